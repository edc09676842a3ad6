"""
Database Package - SQLAlchemy
=============================

Relational store for users, documents, analysis jobs and reports.
"""

from .models import Base, User, Document, AnalysisJob, Report
from .session import get_db_session, init_db, get_engine, reset_engine

__all__ = [
    # Base
    "Base",
    # Tables
    "User", "Document", "AnalysisJob", "Report",
    # Session
    "get_db_session", "init_db", "get_engine", "reset_engine",
]
