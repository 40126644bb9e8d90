"""Database module."""
from .models import (
    Base,
    UserRole,
    User,
    School,
    Coordinator,
    Teacher,
    Discipline,
    SchoolClass,
    Student,
    TeachingAssignment,
    Term,
    Assessment,
    Grade,
    ApprovalRule,
)
from .connection import engine, SessionLocal, enable_sqlite_foreign_keys, get_db, init_db

__all__ = [
    "Base",
    "UserRole",
    "User",
    "School",
    "Coordinator",
    "Teacher",
    "Discipline",
    "SchoolClass",
    "Student",
    "TeachingAssignment",
    "Term",
    "Assessment",
    "Grade",
    "ApprovalRule",
    "engine",
    "SessionLocal",
    "enable_sqlite_foreign_keys",
    "get_db",
    "init_db",
]
