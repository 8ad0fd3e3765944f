from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..schemas import ContactKind

# Icons rendered next to the contact rows (MUI data-testid values)
PHONE_ICON_IDS = ("SmartphoneIcon", "PhoneIcon", "PhoneIphoneIcon", "PhoneAndroidIcon", "PhoneEnabledIcon")
EMAIL_ICON_IDS = ("MailOutlineIcon", "MailIcon", "EmailIcon", "AlternateEmailIcon", "ForwardToInboxIcon")

PHONE_LABELS = (
    "ver telefone",
    "visualizar telefone",
    "mostrar telefone",
    "ver numero",
    "visualizar numero",
    "mostrar numero",
    "ver celular",
    "visualizar celular",
    "mostrar celular",
    "ver contato telefonico",
    "mostrar contato telefonico",
)
EMAIL_LABELS = (
    "ver email",
    "ver e-mail",
    "visualizar email",
    "visualizar e-mail",
    "mostrar email",
    "mostrar e-mail",
    "ver contato de email",
    "mostrar contato de email",
)

PHONE_VALUE_RE = re.compile(r"(\(?\d{2}\)?\s*9?\d{4,5}[-\s]?\d{4})")
EMAIL_VALUE_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", re.IGNORECASE)


def normalize_text(value: Optional[str]) -> str:
    """Accent-free, whitespace-collapsed, lowercase text (matches the in-page normalizer)."""
    if not value or not isinstance(value, str):
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped).strip().lower()


@dataclass(frozen=True)
class ContactOptions:
    """DOM-location hints for one contact kind.

    Icons and label phrases locate the reveal control; ``value_pattern``
    recognises the revealed value and ``placeholder_pattern`` the text it replaces.
    """
    kind: ContactKind
    icon_test_ids: Tuple[str, ...]
    label_phrases: Tuple[str, ...]
    placeholder_pattern: str
    value_pattern: str

    def to_js_arg(self) -> Dict[str, Any]:
        """Serializable argument for the in-page scripts."""
        return {
            "kind": self.kind.value,
            "iconTestIds": list(self.icon_test_ids),
            "labelPhrases": list(self.label_phrases),
            "placeholderPattern": self.placeholder_pattern,
            "valuePattern": self.value_pattern,
        }


def build_contact_options(kind: ContactKind | str) -> ContactOptions:
    """Resolve the location hints for ``kind``. Pure; no page access."""
    kind = ContactKind(kind)
    if kind == ContactKind.PHONE:
        icons, labels, value_re = PHONE_ICON_IDS, PHONE_LABELS, PHONE_VALUE_RE
    else:
        icons, labels, value_re = EMAIL_ICON_IDS, EMAIL_LABELS, EMAIL_VALUE_RE
    phrases = tuple(normalize_text(p) for p in labels)
    return ContactOptions(
        kind=kind,
        icon_test_ids=icons,
        label_phrases=phrases,
        # Phrases are plain words, spaces and hyphens: safe for both re and JS RegExp
        placeholder_pattern="|".join(phrases),
        value_pattern=value_re.pattern,
    )


def first_candidate(raw: Optional[str]) -> Optional[str]:
    """First comma-separated candidate of a raw revealed value, trimmed."""
    if not raw:
        return None
    first = raw.split(",")[0].strip()
    return first or None
