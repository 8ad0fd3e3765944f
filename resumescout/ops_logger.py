from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
import threading

OPS_ENV_FLAG = "RS_OPS_JSON"


def ops_stdout_from_env() -> bool:
    return os.environ.get(OPS_ENV_FLAG, "0") == "1"


class OpsLogger:
    """Append-only JSONL log of per-profile and per-run scrape records.

    - One JSON object per line (UTF-8), tagged with ``rs_ops: 1``
    - Thread-safe (coarse lock)
    - Best-effort: never raises to caller
    - Mirrors to stdout when ``also_stdout`` or ``RS_OPS_JSON=1``
    """

    def __init__(self, file_path: Optional[Path], also_stdout: bool = False) -> None:
        self.file_path = Path(file_path) if file_path else None
        self.also_stdout = bool(also_stdout) or ops_stdout_from_env()
        self._lock = threading.Lock()
        if self.file_path is not None:
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
            except Exception:
                pass

    def emit(self, record: Dict[str, Any]) -> None:
        payload = {"rs_ops": 1, **record}
        try:
            line = json.dumps(payload, ensure_ascii=False, default=str)
        except Exception:
            try:
                line = json.dumps({"rs_ops": 1, "_serialization_error": True, "record_str": str(record)})
            except Exception:
                return
        if self.file_path is not None:
            try:
                with self._lock:
                    with self.file_path.open("a", encoding="utf-8") as f:
                        f.write(line)
                        f.write("\n")
            except Exception:
                # Never propagate logging errors
                pass
        if self.also_stdout:
            try:
                print(line)
            except Exception:
                pass
