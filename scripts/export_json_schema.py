#!/usr/bin/env python3
"""
Export JSON Schema files from the ResumeScout Pydantic models.
- Draft: 2020-12
- Sources: resumescout/schemas.py (ProfileData, ContactRecord, ListingRecord)
- Outputs: schemas/*.schema.json
"""
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

ROOT = Path(__file__).resolve().parents[1]
SCHEMAS_DIR = ROOT / "schemas"

sys.path.insert(0, str(ROOT))

from resumescout.schemas import ContactRecord, ListingRecord, ProfileData  # noqa: E402

SCHEMA_VERSION = "https://json-schema.org/draft/2020-12/schema"


def add_common_headers(schema: Dict[str, Any], title: str, description: str, example: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    schema.setdefault("$schema", SCHEMA_VERSION)
    schema.setdefault("title", title)
    schema.setdefault("description", description)
    if example is not None:
        schema.setdefault("examples", [example])
    return schema


def contact_example() -> dict:
    return {"email": "ana.souza@example.com.br", "phone": "(41) 99999-1234"}


def profile_example() -> dict:
    contact = contact_example()
    return {
        "personal_data": {
            "age": 32,
            "gender": "Feminino",
            "marital_status": "Solteira",
            "date_of_birth": "14/03/1993",
            "city": "Curitiba",
            "state": "PR",
            "country": "Brasil",
            **contact,
        },
        "career_info": {
            "career_objective": "Desenvolvedora Python",
            "qualifications": "Experiência com APIs REST e automação de testes.",
            "salary_expectation": "R$ 8.000,00",
        },
        "work_experiences": [
            {
                "company": "Empresa Exemplo Ltda",
                "position": "Desenvolvedora Backend",
                "start_date": "02/2021",
                "end_date": "Atual",
                "duration": "4 anos",
                "is_current": True,
                "display_order": 0,
            }
        ],
        "education": [
            {
                "degree_type": "Graduação",
                "course": "Ciência da Computação",
                "institution": "Universidade Federal do Paraná",
                "start_date": "02/2011",
                "end_date": "12/2015",
                "status": "Concluído",
                "display_order": 0,
            }
        ],
        "courses": [],
        "languages": [{"language": "Inglês", "proficiency": "Avançado"}],
        "skills": [{"skill_name": "Python", "category": "Linguagens de Programação"}],
        "additional_info": "",
    }


def listing_example() -> dict:
    return {
        "name": "Ana Souza",
        "job_title": "Desenvolvedora Python",
        "location": "Curitiba - PR",
        "experience": "4 anos",
        "summary": "Experiência: 4 anos | Pretensão: R$ 8.000,00",
        "profile_url": "https://www.catho.com.br/curriculos/ana-souza/123456/",
        "last_updated": "Atualizado há 2 dias",
        "search_query": "desenvolvedor python",
    }


def save_schema(model, path: Path, title: str, description: str, example: dict):
    schema = model.model_json_schema()  # pydantic v2
    schema = add_common_headers(schema, title, description, example)
    path.write_text(json.dumps(schema, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"Wrote {path.relative_to(ROOT)}")


def main():
    SCHEMAS_DIR.mkdir(parents=True, exist_ok=True)
    save_schema(
        ContactRecord,
        SCHEMAS_DIR / "contact_record.schema.json",
        "ContactRecord",
        "Best-effort revealed contact details; absent fields are valid.",
        contact_example(),
    )
    save_schema(
        ProfileData,
        SCHEMAS_DIR / "profile.schema.json",
        "ProfileData",
        "Full structured candidate profile with merged contact details.",
        profile_example(),
    )
    save_schema(
        ListingRecord,
        SCHEMAS_DIR / "listing.schema.json",
        "ListingRecord",
        "One candidate card from a search results page.",
        listing_example(),
    )


if __name__ == "__main__":
    main()
