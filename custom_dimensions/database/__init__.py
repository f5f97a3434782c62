"""
Database Module
"""
from .connection import (
    init_database,
    close_database,
    create_schema,
    create_session_factory,
    get_db,
    get_session_factory,
)
from .models import Base, CustomDimension, ArchivedReport, Scope

__all__ = [
    "init_database",
    "close_database",
    "create_schema",
    "create_session_factory",
    "get_db",
    "get_session_factory",
    "Base",
    "CustomDimension",
    "ArchivedReport",
    "Scope",
]
