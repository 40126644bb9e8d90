"""
Shared fixtures for the Academic Records test suite.

Every test gets a fresh in-memory database seeded with two schools.
"""
import os
import sys
from datetime import date
from types import SimpleNamespace

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ["DATABASE_URL"] = "sqlite://"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from database import (
    Base,
    enable_sqlite_foreign_keys,
    get_db,
    Assessment,
    Coordinator,
    Discipline,
    School,
    SchoolClass,
    Student,
    Teacher,
    TeachingAssignment,
    Term,
    User,
)
from academics import resolve_identity


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    """Database session bound to the test engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def world(db):
    """
    Two schools with classes, staff, students and users of every role.

    School A: classes A1 (9th grade) and A2 (8th grade).
      teacher_a teaches Math in A1, teacher_a2 teaches Portuguese in A2.
      Students s1, s2, s3 in A1; s4 in A2.
    School B: class B1 with teacher_b (Math) and student s5.
    Orphans: a coordinator and a teacher without school, a class whose
    school is gone, and a student without enrollment.
    """
    school_a = School(name="Escola Alfa")
    school_b = School(name="Escola Beta")
    db.add_all([school_a, school_b])
    db.flush()

    math = Discipline(name="Mathematics")
    portuguese = Discipline(name="Portuguese")
    db.add_all([math, portuguese])

    class_a1 = SchoolClass(school_id=school_a.id, name="9A", grade_level="9th grade", academic_year=2025, shift="morning")
    class_a2 = SchoolClass(school_id=school_a.id, name="8A", grade_level="8th grade", academic_year=2025, shift="afternoon")
    class_b1 = SchoolClass(school_id=school_b.id, name="9B", grade_level="9th grade", academic_year=2025, shift="morning")
    class_orphan = SchoolClass(school_id=None, name="Legacy", grade_level=None, academic_year=2025)
    db.add_all([class_a1, class_a2, class_b1, class_orphan])

    teacher_a = Teacher(name="Ana Souza", school_id=school_a.id)
    teacher_a2 = Teacher(name="Bruno Lima", school_id=school_a.id)
    teacher_b = Teacher(name="Carla Dias", school_id=school_b.id)
    teacher_orphan = Teacher(name="Davi Reis", school_id=None)
    coordinator_a = Coordinator(name="Elisa Prado", school_id=school_a.id)
    coordinator_b = Coordinator(name="Fabio Nunes", school_id=school_b.id)
    coordinator_orphan = Coordinator(name="Gina Rocha", school_id=None)
    db.add_all([
        teacher_a, teacher_a2, teacher_b, teacher_orphan,
        coordinator_a, coordinator_b, coordinator_orphan,
    ])
    db.flush()

    s1 = Student(name="Alice", registration="2025001", class_id=class_a1.id, birth_date=date(2010, 3, 1))
    s2 = Student(name="Bernardo", registration="2025002", class_id=class_a1.id)
    s3 = Student(name="Caio", registration="2025003", class_id=class_a1.id)
    s4 = Student(name="Diana", registration="2025004", class_id=class_a2.id)
    s5 = Student(name="Eduardo", registration="2025005", class_id=class_b1.id)
    s6 = Student(name="Flora", registration="2025006", class_id=None)
    s7 = Student(name="Gabriel", registration="2025007", class_id=class_orphan.id)
    db.add_all([s1, s2, s3, s4, s5, s6, s7])

    assignment_a1 = TeachingAssignment(class_id=class_a1.id, teacher_id=teacher_a.id, discipline_id=math.id)
    assignment_a2 = TeachingAssignment(class_id=class_a2.id, teacher_id=teacher_a2.id, discipline_id=portuguese.id)
    assignment_b1 = TeachingAssignment(class_id=class_b1.id, teacher_id=teacher_b.id, discipline_id=math.id)
    assignment_orphan = TeachingAssignment(class_id=class_orphan.id, teacher_id=teacher_a.id, discipline_id=portuguese.id)
    db.add_all([assignment_a1, assignment_a2, assignment_b1, assignment_orphan])

    term1 = Term(school_id=school_a.id, academic_year=2025, name="1st term",
                 starts_on=date(2025, 2, 1), ends_on=date(2025, 4, 30))
    term2 = Term(school_id=school_a.id, academic_year=2025, name="2nd term",
                 starts_on=date(2025, 5, 1), ends_on=date(2025, 7, 31))
    term_b = Term(school_id=school_b.id, academic_year=2025, name="1st term",
                  starts_on=date(2025, 2, 1), ends_on=date(2025, 4, 30))
    db.add_all([term1, term2, term_b])
    db.flush()

    users = {
        "admin": User(name="Root", email="admin@example.org", role="ADMIN"),
        "coordinator_a": User(name="Elisa Prado", email="elisa@example.org", role="COORDINATOR", coordinator_id=coordinator_a.id),
        "coordinator_b": User(name="Fabio Nunes", email="fabio@example.org", role="COORDINATOR", coordinator_id=coordinator_b.id),
        "coordinator_orphan": User(name="Gina Rocha", email="gina@example.org", role="COORDINATOR", coordinator_id=coordinator_orphan.id),
        "teacher_a": User(name="Ana Souza", email="ana@example.org", role="TEACHER", teacher_id=teacher_a.id),
        "teacher_a2": User(name="Bruno Lima", email="bruno@example.org", role="TEACHER", teacher_id=teacher_a2.id),
        "teacher_b": User(name="Carla Dias", email="carla@example.org", role="TEACHER", teacher_id=teacher_b.id),
        "teacher_orphan": User(name="Davi Reis", email="davi@example.org", role="TEACHER", teacher_id=teacher_orphan.id),
        "student_1": User(name="Alice", email="alice@example.org", role="STUDENT", student_id=s1.id),
        "student_2": User(name="Bernardo", email="bernardo@example.org", role="STUDENT", student_id=s2.id),
        "student_4": User(name="Diana", email="diana@example.org", role="STUDENT", student_id=s4.id),
        "student_5": User(name="Eduardo", email="eduardo@example.org", role="STUDENT", student_id=s5.id),
        "student_unenrolled": User(name="Flora", email="flora@example.org", role="STUDENT", student_id=s6.id),
        "inactive": User(name="Old Account", email="old@example.org", role="TEACHER", teacher_id=teacher_a.id, active=False),
    }
    db.add_all(users.values())
    db.commit()

    return SimpleNamespace(
        school_a=school_a,
        school_b=school_b,
        math=math,
        portuguese=portuguese,
        class_a1=class_a1,
        class_a2=class_a2,
        class_b1=class_b1,
        class_orphan=class_orphan,
        teacher_a=teacher_a,
        teacher_a2=teacher_a2,
        teacher_b=teacher_b,
        teacher_orphan=teacher_orphan,
        coordinator_a=coordinator_a,
        coordinator_b=coordinator_b,
        coordinator_orphan=coordinator_orphan,
        s1=s1, s2=s2, s3=s3, s4=s4, s5=s5, s6=s6, s7=s7,
        assignment_a1=assignment_a1,
        assignment_a2=assignment_a2,
        assignment_b1=assignment_b1,
        assignment_orphan=assignment_orphan,
        term1=term1,
        term2=term2,
        term_b=term_b,
        users=users,
    )


@pytest.fixture
def identity_of(db, world):
    """Resolve the Identity of a seeded user by key."""
    def _identity(key):
        return resolve_identity(db, world.users[key].id)
    return _identity


@pytest.fixture
def make_assessment(db):
    """Insert an assessment directly, bypassing authorization."""
    def _make(assignment, term, title="Exam", weight=1.0, applied_on=None, **kwargs):
        assessment = Assessment(
            assignment_id=assignment.id,
            term_id=term.id,
            title=title,
            weight=weight,
            applied_on=applied_on or term.starts_on,
            **kwargs
        )
        db.add(assessment)
        db.commit()
        db.refresh(assessment)
        return assessment
    return _make


@pytest.fixture
def client(db):
    """TestClient whose requests share the test session."""
    from main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
