"""
Grade reading tools for the Academic Records core.
Every read goes through the resolver; listings apply its scope filter
before pagination.

CRITICAL RULE: Students can only see their own grades.
"""
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from database import Assessment, Grade, SchoolClass, Student, TeachingAssignment, UserRole
from .authorization import (
    Action,
    ListKind,
    assessment_resource,
    existing_grade_resource,
    get_resolver,
    student_resource,
)
from .exceptions import NotFoundError
from .identity import Identity


def _scoped_grade_query(db: Session, identity: Identity):
    """Grades joined up to their class, narrowed to the caller's scope."""
    scope = get_resolver().scope_filter(identity, ListKind.GRADES)
    query = (
        db.query(Grade)
        .join(Assessment, Grade.assessment_id == Assessment.id)
        .join(TeachingAssignment, Assessment.assignment_id == TeachingAssignment.id)
        .join(SchoolClass, TeachingAssignment.class_id == SchoolClass.id)
    )
    return scope.apply(
        query,
        school=SchoolClass.school_id,
        class_=TeachingAssignment.class_id,
        student=Grade.student_id,
    )


def _page(query, offset: int, limit: int) -> Dict[str, Any]:
    total = query.count()
    grades = query.offset(offset).limit(limit).all()
    return {
        "total": total,
        "offset": offset,
        "limit": limit,
        "grades": [g.to_dict() for g in grades],
    }


def get_grade(db: Session, identity: Identity, grade_id: int) -> Dict[str, Any]:
    """
    Get a single grade.

    Raises:
        NotFoundError: If no grade has this id
        Forbidden: If the grade exists but is outside the caller's scope
    """
    grade = db.query(Grade).filter(Grade.id == grade_id).first()
    if not grade:
        raise NotFoundError("grade", grade_id)
    get_resolver().enforce(identity, Action.READ, existing_grade_resource(grade))
    return grade.to_dict()


def list_grades(
    db: Session,
    identity: Identity,
    class_id: Optional[int] = None,
    assessment_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 50
) -> Dict[str, Any]:
    """
    List every grade the caller may see.

    - ADMIN: all grades
    - COORDINATOR: grades of the own school
    - TEACHER: grades of the assigned classes
    - STUDENT: own grades only
    """
    query = _scoped_grade_query(db, identity)

    if class_id:
        query = query.filter(TeachingAssignment.class_id == class_id)
    if assessment_id:
        query = query.filter(Grade.assessment_id == assessment_id)

    return _page(query.order_by(Grade.id), offset, limit)


def list_grades_by_assessment(
    db: Session,
    identity: Identity,
    assessment_id: int,
    offset: int = 0,
    limit: int = 50
) -> Dict[str, Any]:
    """
    Grades recorded for one assessment, by student name.
    Students get only their own row.
    """
    assessment = db.query(Assessment).filter(Assessment.id == assessment_id).first()
    if not assessment:
        raise NotFoundError("assessment", assessment_id)
    get_resolver().enforce(identity, Action.READ, assessment_resource(assessment))

    query = (
        db.query(Grade)
        .join(Student, Grade.student_id == Student.id)
        .filter(Grade.assessment_id == assessment_id)
    )
    if identity.role == UserRole.STUDENT:
        query = query.filter(Grade.student_id == identity.student_id)

    result = _page(query.order_by(Student.name), offset, limit)
    result["assessment"] = assessment.to_dict()
    return result


def list_grades_by_student(
    db: Session,
    identity: Identity,
    student_id: int,
    offset: int = 0,
    limit: int = 50
) -> Dict[str, Any]:
    """
    Grades of one student, most recently applied first.
    """
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise NotFoundError("student", student_id)
    get_resolver().enforce(identity, Action.READ, student_resource(student))

    query = (
        db.query(Grade)
        .join(Assessment, Grade.assessment_id == Assessment.id)
        .filter(Grade.student_id == student_id)
        .order_by(Assessment.applied_on.desc(), Grade.id.desc())
    )
    result = _page(query, offset, limit)
    result["student"] = {"id": student.id, "name": student.name}
    return result
