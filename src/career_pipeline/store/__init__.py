"""Persistent store for postings, follow-ups, resume versions and applications."""

from career_pipeline.store.database import create_engine, create_session_factory, init_db
from career_pipeline.store.repository import JobStore

__all__ = ["JobStore", "create_engine", "create_session_factory", "init_db"]
