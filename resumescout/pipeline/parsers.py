"""
Structured-field parsers for Catho profile pages.

Pure functions from page HTML to the typed ``ProfileData`` sections. Each
section is located by its h2/h3 heading and parsed independently from the
section's visible text, so a layout change in one block leaves the others
intact.
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from selectolax.parser import HTMLParser, Node

from ..schemas import (
    CareerInfo,
    Course,
    Education,
    Language,
    PersonalData,
    ProfileData,
    Skill,
    WorkExperience,
)


class ProfileParseError(Exception):
    """Page content cannot be parsed into a profile at all."""


SECTION_PERSONAL = "Dados Pessoais"
SECTION_OBJECTIVE = "Objetivo e qualificações"
SECTION_SUMMARY = "Resumo do CV"
SECTION_EXPERIENCE = "Experiência Profissional"
SECTION_EDUCATION = "Formação"
SECTION_COURSES = "Cursos e especializações"
SECTION_LANGUAGES = "Idiomas"
SECTION_ADDITIONAL = "Informações Adicionais"

PERSONAL_FIELDS = {
    "gender": r"Sexo:\s*([^\n]+)",
    "marital_status": r"Estado Civil:\s*([^\n]+)",
    "neighborhood": r"Bairro:\s*([^\n]+)",
    "address": r"Endereço:\s*([^\n]+)",
    "zip_code": r"CEP:\s*([^\n]+)",
    "country": r"País:\s*([^\n]+)",
}

SKILL_PATTERNS = {
    "Linguagens de Programação": r"Linguagens de Programação:\s*([^\n]+)",
    "Tecnologias": r"Tecnologias:\s*([^\n]+)",
    "Ferramentas": r"Ferramentas:\s*([^\n]+)",
    "Sistemas Operacionais": r"Sistemas Operacionais:\s*([^\n]+)",
}

LANGUAGE_RE = re.compile(r"([^\W\d_]+)\s+(Básico|Intermediário|Avançado|Fluente)", re.IGNORECASE)
PERIOD_RE = re.compile(r"(\d{2}/\d{4})\s*(?:até|-)?\s*(\d{2}/\d{4}|Atual)", re.IGNORECASE)
DURATION_RE = re.compile(r"(\d+\s*(?:anos|ano|meses|mês)(?:\s*e\s*\d+\s*(?:meses|mês))?)", re.IGNORECASE)


def _lines(text: str) -> List[str]:
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


def node_text(node: Optional[Node]) -> str:
    """Visible text of ``node`` with one logical line per text node."""
    if node is None:
        return ""
    return "\n".join(_lines(node.text(deep=True, separator="\n")))


def _match(pattern: str, text: str, flags: int = re.IGNORECASE) -> Optional[str]:
    m = re.search(pattern, text, flags)
    return m.group(1).strip() if m else None


def find_section(tree: HTMLParser, title: str) -> Optional[Node]:
    for heading in tree.css("h2, h3"):
        if title in (heading.text() or ""):
            return heading.parent
    return None


def split_blocks(section: Node, selector: str, title: str) -> List[Tuple[str, str]]:
    """Split a section into ``(heading, block_text)`` pairs.

    Entry headings are the ``selector`` matches inside the section; each block
    runs from its heading line up to the next entry heading.
    """
    headings = []
    for el in section.css(selector):
        t = " ".join((el.text() or "").split())
        if t and title not in t:
            headings.append(t)
    if not headings:
        return []

    blocks: List[Tuple[str, List[str]]] = []
    pending = list(headings)
    for line in _lines(node_text(section)):
        flat = " ".join(line.split())
        if pending and flat == pending[0]:
            blocks.append((pending.pop(0), []))
            continue
        if blocks:
            blocks[-1][1].append(line)
    return [(h, "\n".join(body)) for h, body in blocks]


def parse_personal_data(tree: HTMLParser) -> PersonalData:
    data = PersonalData()
    header = tree.css_first("h1, .candidate-name")
    if header is not None:
        age = _match(r"(\d+)\s*anos", node_text(header))
        if age:
            data.age = int(age)

    section = find_section(tree, SECTION_PERSONAL)
    if section is None:
        return data
    text = node_text(section)
    for field_name, pattern in PERSONAL_FIELDS.items():
        value = _match(pattern, text)
        if value:
            setattr(data, field_name, value)
    dob = _match(r"Data de nascimento:\s*(\d{2}/\d{2}/\d{4})", text)
    if dob:
        data.date_of_birth = dob
    city_state = _match(r"Cidade:\s*([^\n]+)", text)
    if city_state:
        parts = city_state.split(" - ")
        data.city = parts[0].strip() or city_state
        data.state = parts[1].strip() if len(parts) > 1 else None
    return data


def parse_career_info(tree: HTMLParser) -> CareerInfo:
    info = CareerInfo()
    objective = find_section(tree, SECTION_OBJECTIVE)
    if objective is not None:
        text = node_text(objective)
        info.career_objective = _match(r"Cargo de interesse:\s*([^\n]+)", text)
        info.qualifications = _match(
            r"Qualificações:\s*([^\n]+(?:\n(?!Experiência|Formação|Cursos|Idiomas).+)*)", text
        )
    summary = find_section(tree, SECTION_SUMMARY)
    if summary is not None:
        info.salary_expectation = _match(r"Pretensão salarial:\s*([^\n]+)", node_text(summary))
    return info


def parse_work_experiences(tree: HTMLParser) -> List[WorkExperience]:
    section = find_section(tree, SECTION_EXPERIENCE)
    if section is None:
        return []
    experiences = []
    for order, (company, block) in enumerate(split_blocks(section, "h3, h4, strong", SECTION_EXPERIENCE)):
        exp = WorkExperience(company=company, display_order=order)
        exp.position = _match(r"Cargo:\s*([^-\n]+)", block) or ""
        period = PERIOD_RE.search(block)
        if period:
            exp.start_date = period.group(1)
            exp.end_date = period.group(2)
            exp.is_current = "atual" in period.group(2).lower()
        exp.duration = _match(DURATION_RE.pattern, block) or ""
        exp.last_salary = _match(r"Último salário:\s*([^\n]+)", block) or ""
        exp.activities = _match(
            r"Principais atividades:\s*([^\n]+(?:\n(?!Cargo:|Último salário:).+)*)", block
        ) or ""
        experiences.append(exp)
    return experiences


def parse_education(tree: HTMLParser) -> List[Education]:
    section = find_section(tree, SECTION_EDUCATION)
    if section is None:
        return []
    items = []
    for order, (degree, block) in enumerate(split_blocks(section, "h3, h4, strong", SECTION_EDUCATION)):
        degree_type, _, course = degree.partition(" em ")
        lines = _lines(block)
        edu = Education(
            degree_type=degree_type.strip() or degree,
            course=course.strip(),
            institution=lines[0] if lines else "",
            display_order=order,
        )
        period = re.search(r"(\d{2}/\d{4})\s*até\s*(\d{2}/\d{4})", block, re.IGNORECASE)
        if period:
            edu.start_date, edu.end_date = period.group(1), period.group(2)
        if re.search(r"\b(cursando|em andamento)\b", block, re.IGNORECASE):
            edu.status = "Em andamento"
        items.append(edu)
    return items


def parse_courses(tree: HTMLParser) -> List[Course]:
    section = find_section(tree, SECTION_COURSES)
    if section is None:
        return []
    courses = []
    for order, (name, block) in enumerate(split_blocks(section, "h4, strong", SECTION_COURSES)):
        lines = _lines(block)
        course = Course(course_name=name, institution=lines[0] if lines else "", display_order=order)
        duration = re.search(r"(Curta|Média|Longa)\s*\([^)]+\)", block, re.IGNORECASE)
        if duration:
            course.duration = duration.group(0).strip()
        course.completion_year = _match(r"Ano de conclusão:\s*(\d{4})", block) or ""
        courses.append(course)
    return courses


def parse_languages(tree: HTMLParser) -> List[Language]:
    section = find_section(tree, SECTION_LANGUAGES)
    if section is None:
        return []
    return [
        Language(language=m.group(1).strip(), proficiency=m.group(2).strip())
        for m in LANGUAGE_RE.finditer(node_text(section))
    ]


def parse_additional_info(tree: HTMLParser) -> Tuple[str, List[Skill]]:
    section = find_section(tree, SECTION_ADDITIONAL)
    if section is None:
        return "", []
    text = node_text(section)
    skills = []
    for category, pattern in SKILL_PATTERNS.items():
        raw = _match(pattern, text)
        if not raw:
            continue
        for name in re.split(r"[,;]", raw):
            name = name.strip()
            if name:
                skills.append(Skill(skill_name=name, category=category))
    return text, skills


def parse_profile(html: str) -> ProfileData:
    """Parse a full profile page. Raises ``ProfileParseError`` on unusable input."""
    if not html or not html.strip():
        raise ProfileParseError("empty page content")
    if "<" not in html:
        raise ProfileParseError("page content is not HTML")
    tree = HTMLParser(html)
    if tree.body is None:
        raise ProfileParseError("page has no body")

    profile = ProfileData()
    sections = [
        ("personal_data", parse_personal_data),
        ("career_info", parse_career_info),
        ("work_experiences", parse_work_experiences),
        ("education", parse_education),
        ("courses", parse_courses),
        ("languages", parse_languages),
    ]
    for attr, parser in sections:
        try:
            setattr(profile, attr, parser(tree))
        except Exception as e:
            print(f"  ⚠️ Error parsing {attr}: {e}")
    try:
        profile.additional_info, profile.skills = parse_additional_info(tree)
    except Exception as e:
        print(f"  ⚠️ Error parsing additional_info: {e}")
    return profile
