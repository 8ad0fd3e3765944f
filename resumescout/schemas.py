"""
ResumeScout - Pydantic Data Schemas

Core data models for candidate profiles scraped from Catho: personal data
(with revealed contact details), career info, and the repeated sections
(work experience, education, courses, languages, skills).
"""

from enum import Enum
from typing import List, Optional
import re

from pydantic import BaseModel, Field, field_validator


class ContactKind(str, Enum):
    """Contact channels hidden behind reveal controls."""
    PHONE = "phone"
    EMAIL = "email"


class ContactRecord(BaseModel):
    """
    Best-effort contact details for one profile.

    A missing field is a valid terminal state (the profile did not expose
    that channel, or the reveal did not complete), not an error.
    """
    email: Optional[str] = Field(default=None, description="First revealed email address")
    phone: Optional[str] = Field(default=None, description="First revealed phone number")

    @field_validator('email', 'phone')
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = v.strip()
        return v or None

    def is_empty(self) -> bool:
        return not (self.email or self.phone)


class PersonalData(BaseModel):
    age: Optional[int] = None
    gender: Optional[str] = None
    marital_status: Optional[str] = None
    date_of_birth: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    neighborhood: Optional[str] = None
    address: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator('date_of_birth')
    @classmethod
    def validate_date_of_birth(cls, v):
        """Catho renders dates of birth as DD/MM/YYYY."""
        if v is None:
            return v
        if not re.match(r'^\d{2}/\d{2}/\d{4}$', v.strip()):
            raise ValueError('date_of_birth must follow DD/MM/YYYY')
        return v.strip()

    def has_content(self) -> bool:
        """True when any non-contact field is present.

        Contact fields alone do not make a profile usable: a page that only
        yielded revealed contacts carried no profile content.
        """
        data = self.model_dump(exclude={"email", "phone"})
        return any(v not in (None, "") for v in data.values())


class CareerInfo(BaseModel):
    career_objective: Optional[str] = None
    qualifications: Optional[str] = None
    salary_expectation: Optional[str] = None

    def has_content(self) -> bool:
        return any(v for v in self.model_dump().values())


class WorkExperience(BaseModel):
    company: str
    position: str = ""
    start_date: str = ""
    end_date: str = ""
    duration: str = ""
    last_salary: str = ""
    activities: str = ""
    is_current: bool = False
    display_order: int = 0


class Education(BaseModel):
    degree_type: str
    course: str = ""
    institution: str = ""
    start_date: str = ""
    end_date: str = ""
    status: str = "Concluído"
    display_order: int = 0


class Course(BaseModel):
    course_name: str
    institution: str = ""
    duration: str = ""
    completion_year: str = ""
    display_order: int = 0


class Language(BaseModel):
    language: str
    proficiency: str


class Skill(BaseModel):
    skill_name: str
    category: str


class ProfileData(BaseModel):
    """
    Full structured profile for one candidate URL.

    Produced by the structured-field parsers, then enriched with the
    revealed contact details in ``personal_data``.
    """
    personal_data: PersonalData = Field(default_factory=PersonalData)
    career_info: CareerInfo = Field(default_factory=CareerInfo)
    work_experiences: List[WorkExperience] = Field(default_factory=list)
    education: List[Education] = Field(default_factory=list)
    courses: List[Course] = Field(default_factory=list)
    languages: List[Language] = Field(default_factory=list)
    skills: List[Skill] = Field(default_factory=list)
    additional_info: str = ""

    def merge_contacts(self, contacts: ContactRecord) -> None:
        """Copy revealed contact fields into personal data (present fields only)."""
        if contacts.email:
            self.personal_data.email = contacts.email
        if contacts.phone:
            self.personal_data.phone = contacts.phone


class ListingRecord(BaseModel):
    """One candidate card on a search results page."""
    name: str
    job_title: str = ""
    location: str = ""
    experience: str = ""
    summary: str = ""
    profile_url: str
    last_updated: str = ""
    search_query: str = ""

    @field_validator('summary')
    @classmethod
    def truncate_summary(cls, v):
        return (v or "")[:500]
