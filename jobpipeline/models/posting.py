"""
Posting Model - SQLAlchemy ORM model for discovered job postings

One row per (url, user). Rows are inserted by the scrape pipeline with
conflict-do-nothing semantics and never mutated afterwards, except for the
similarity score written by the matching task and the sent flag owned by
the notification side.
"""

from sqlalchemy import Boolean, Column, DateTime, Float, String, Text, UniqueConstraint
from sqlalchemy.sql import func
from jobpipeline.database import Base
import uuid


class JobPosting(Base):
    """
    Persisted job posting scoped to one user.

    Attributes:
        id: UUID primary key
        posting_id: Stable id derived from the normalized URL (match cache key)
        user_id: Owner of this row
        title: Job title (max 500 chars)
        company_name: Company name
        description: Possibly truncated description text
        url: Original posting URL, unique per user
        location/salary_range/posted_date: Optional listing details
        source: Adapter that produced the posting
        similarity_score: Latest match score (0-1), null until matched
        sent: Set by the notification side once emailed
    """

    __tablename__ = "postings"
    __table_args__ = (UniqueConstraint("url", "user_id", name="uq_postings_url_user"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    posting_id = Column(String(32), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String(500), nullable=False)
    company_name = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    url = Column(String(2000), nullable=False)
    location = Column(String(500), nullable=True)
    salary_range = Column(String(100), nullable=True)
    posted_date = Column(DateTime, nullable=True)
    source = Column(String(50), nullable=False)
    similarity_score = Column(Float, nullable=True)
    sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)
