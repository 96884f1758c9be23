"""
Preference Models - what the pipeline reads to rebuild a scrape run

Only the columns the scrape and matching tasks need. Rows are written by
the surrounding web application.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.sql import func
from jobpipeline.database import Base
import uuid


class JobPreference(Base):
    """
    A user's job search preferences.

    Attributes:
        job_titles: Desired titles, also used as search queries
        locations: Preferred locations (empty means "Remote")
        experience_level: Free-form level (e.g. "senior")
        remote_only: Only remote postings are wanted
        salary_min/max: Expected salary range
    """

    __tablename__ = "job_preferences"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    job_titles = Column(JSON, nullable=False, default=list)
    locations = Column(JSON, nullable=False, default=list)
    experience_level = Column(String(50), nullable=True)
    remote_only = Column(Boolean, nullable=False, default=False)
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Company(Base):
    """Company whose career page a user follows."""

    __tablename__ = "companies"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    career_page_url = Column(Text, nullable=False)
    job_board_url = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, server_default=func.now())
