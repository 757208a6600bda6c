"""Database engine and session management."""

from bhamail.db.session import async_session, engine, get_db

__all__ = ["async_session", "engine", "get_db"]
