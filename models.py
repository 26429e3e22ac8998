"""SQLAlchemy ORM models for identities, portfolios and their child collections."""

import datetime
import uuid

from sqlalchemy import (
    Column, String, Text, DateTime, ForeignKey, JSON, Boolean
)
from sqlalchemy.orm import relationship

from database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime.datetime:
    return datetime.datetime.utcnow()


class AuthUser(Base):
    """Credentials owned by the auth provider; never read by views."""

    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=_now)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("auth_users.id"), primary_key=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now)

    portfolio = relationship("Portfolio", back_populates="owner", uselist=False)


class Portfolio(Base):
    __tablename__ = "portfolios"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("profiles.id"), unique=True, nullable=False)
    username = Column(String(60), unique=True, nullable=False, index=True)
    tagline = Column(String(255), default="", nullable=False)
    bio = Column(Text, default="", nullable=False)
    phone = Column(String(60), default="", nullable=False)
    location = Column(String(120), default="", nullable=False)
    website = Column(String(512), default="", nullable=False)
    github = Column(String(512), default="", nullable=False)
    linkedin = Column(String(512), default="", nullable=False)
    theme = Column(String(20), default="modern", nullable=False)
    is_public = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now)

    owner = relationship("Profile", back_populates="portfolio")


class Education(Base):
    __tablename__ = "education"

    id = Column(String(36), primary_key=True, default=_uuid)
    portfolio_id = Column(String(36), ForeignKey("portfolios.id"), nullable=False, index=True)
    institution = Column(String(255), nullable=False)
    degree = Column(String(255), nullable=False)
    field = Column(String(255), nullable=False)
    start_date = Column(String(40), default="", nullable=False)
    end_date = Column(String(40), default="", nullable=False)
    description = Column(Text, default="", nullable=False)
    created_at = Column(DateTime, default=_now)


class Experience(Base):
    __tablename__ = "experience"

    id = Column(String(36), primary_key=True, default=_uuid)
    portfolio_id = Column(String(36), ForeignKey("portfolios.id"), nullable=False, index=True)
    company = Column(String(255), nullable=False)
    position = Column(String(255), nullable=False)
    location = Column(String(120), default="", nullable=False)
    start_date = Column(String(40), default="", nullable=False)
    end_date = Column(String(40), default="", nullable=False)
    description = Column(Text, default="", nullable=False)
    created_at = Column(DateTime, default=_now)


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_uuid)
    portfolio_id = Column(String(36), ForeignKey("portfolios.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="", nullable=False)
    technologies = Column(JSON, default=list, nullable=False)
    link = Column(String(512), default="", nullable=False)
    github_link = Column(String(512), default="", nullable=False)
    created_at = Column(DateTime, default=_now)


class Skill(Base):
    __tablename__ = "skills"

    id = Column(String(36), primary_key=True, default=_uuid)
    portfolio_id = Column(String(36), ForeignKey("portfolios.id"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    category = Column(String(120), default="", nullable=False)
    proficiency = Column(String(60), default="", nullable=False)
    created_at = Column(DateTime, default=_now)
