"""
SQLAlchemy Models for Database
==============================

Schema for the document checker:
- Users with plan tier and monthly usage counters
- Uploaded documents (metadata only, bytes live in the blob store)
- Analysis jobs with embedded JSON results
- Generated report snapshots

Every row is owned by exactly one user (`user_id`).
Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Text, Integer, DateTime, Enum, ForeignKey,
    BigInteger, Index, JSON
)
from sqlalchemy.orm import relationship, declarative_base

from ..schemas import (
    AnalysisType,
    JobStatus,
    ReportType,
    SubscriptionTier,
    UploadStatus,
)

# Use JSON for cross-database compatibility (works with both PostgreSQL and SQLite)
JSONB = JSON

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


def _values(enum_cls):
    # Store enum values ("completed"), not member names ("COMPLETED")
    return [member.value for member in enum_cls]


class User(Base):
    """Account with plan tier and monthly usage counters"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=True)
    subscription_tier = Column(
        Enum(SubscriptionTier, values_callable=_values),
        default=SubscriptionTier.FREE,
        nullable=False,
    )
    usage_count = Column(Integer, default=0, nullable=False)
    usage_limit = Column(Integer, default=5, nullable=False)  # -1 = unlimited
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    documents = relationship("Document", back_populates="user", cascade="all, delete-orphan")
    analysis_jobs = relationship("AnalysisJob", back_populates="user", cascade="all, delete-orphan")
    reports = relationship("Report", back_populates="user", cascade="all, delete-orphan")


class Document(Base):
    """Uploaded document"""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    filename = Column(String(255), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    file_type = Column(String(100), nullable=False)  # Declared MIME type
    storage_path = Column(String(500), nullable=False)  # Blob store key
    upload_status = Column(
        Enum(UploadStatus, values_callable=_values),
        default=UploadStatus.PENDING,
        nullable=False,
    )

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_document_user_created", "user_id", "created_at"),
    )

    user = relationship("User", back_populates="documents")
    analysis_jobs = relationship("AnalysisJob", back_populates="document", cascade="all, delete-orphan")


class AnalysisJob(Base):
    """One analysis request and its outcome"""
    __tablename__ = "analysis_jobs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Comparison jobs reference only their first document
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=True)

    status = Column(Enum(JobStatus, values_callable=_values), default=JobStatus.PENDING, nullable=False)
    analysis_type = Column(
        Enum(AnalysisType, values_callable=_values),
        default=AnalysisType.CONTRADICTION,
        nullable=False,
    )
    ai_model = Column(String(100), nullable=False)
    results = Column(JSONB, nullable=True)  # AnalysisResult.model_dump(mode="json")
    error_message = Column(Text, nullable=True)
    processing_time_ms = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_job_user_status", "user_id", "status"),
    )

    user = relationship("User", back_populates="analysis_jobs")
    document = relationship("Document", back_populates="analysis_jobs")
    reports = relationship("Report", back_populates="analysis_job", cascade="all, delete-orphan")


class Report(Base):
    """Snapshot of a generated report (metadata + summary counts)"""
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    analysis_job_id = Column(String(36), ForeignKey("analysis_jobs.id", ondelete="CASCADE"), nullable=False)
    report_type = Column(Enum(ReportType, values_callable=_values), nullable=False)
    report_data = Column(JSONB, default=dict)
    generated_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_report_user_generated", "user_id", "generated_at"),
    )

    user = relationship("User", back_populates="reports")
    analysis_job = relationship("AnalysisJob", back_populates="reports")
