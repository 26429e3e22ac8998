"""
Pydantic schemas for request/response validation

The row models mirror the data store tables. Child rows are what the
portfolio form submits; ids and timestamps are assigned by the store.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["student", "recruiter"]
THEMES = ("modern", "minimal", "professional")


class _Row(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ProfileRow(_Row):
    id: str
    email: str
    full_name: str
    role: Role


class PortfolioFields(_Row):
    username: str = ""
    tagline: str = ""
    bio: str = ""
    phone: str = ""
    location: str = ""
    website: str = ""
    github: str = ""
    linkedin: str = ""
    # Unknown themes are stored as given and rendered with the fallback variant.
    theme: str = "modern"
    is_public: bool = True


class EducationRow(_Row):
    institution: str = ""
    degree: str = ""
    field: str = ""
    start_date: str = ""
    end_date: str = ""
    description: str = ""


class ExperienceRow(_Row):
    company: str = ""
    position: str = ""
    location: str = ""
    start_date: str = ""
    end_date: str = ""
    description: str = ""


class ProjectRow(_Row):
    title: str = ""
    description: str = ""
    technologies: List[str] = Field(default_factory=list)
    link: str = ""
    github_link: str = ""


class SkillRow(_Row):
    name: str = ""
    category: str = ""
    proficiency: str = ""


class PortfolioSubmission(BaseModel):
    """Everything the create/edit form sends in one save."""

    portfolio: PortfolioFields
    education: List[EducationRow] = Field(default_factory=list)
    experience: List[ExperienceRow] = Field(default_factory=list)
    projects: List[ProjectRow] = Field(default_factory=list)
    skills: List[SkillRow] = Field(default_factory=list)


# ---------- Auth requests ----------

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str
    role: Role = "student"


class SessionResponse(BaseModel):
    authenticated: bool
    profile: Optional[ProfileRow] = None
