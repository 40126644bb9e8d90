"""
Teaching assignment tools for the Academic Records core.

A teaching assignment links one teacher, one class and one discipline, and
is what lets a teacher grade that class. Only admins and the coordinators
of the class's school maintain them.

CRITICAL RULES:
1. The teacher must work at the class's school
2. At most one assignment per (class, teacher, discipline)
3. A teacher id outside the class's school gets the same answer whether or
   not it exists
4. Removing an assignment removes its assessments and their grades
"""
import logging
from typing import Any, Dict, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Discipline, SchoolClass, Teacher, TeachingAssignment
from .authorization import (
    Action,
    ListKind,
    ResourceKind,
    assignment_resource,
    existing_assignment_resource,
    get_resolver,
    school_id_of,
    school_resource,
)
from .exceptions import ConflictError, NotFoundError, PreconditionFailedError
from .identity import Identity
from .storage import commit

logger = logging.getLogger(__name__)

ASSIGNMENT_EXISTS = "ASSIGNMENT_EXISTS"
TEACHER_NOT_IN_SCHOOL = "TEACHER_NOT_IN_SCHOOL"


def _load_assignment(db: Session, assignment_id: int) -> TeachingAssignment:
    assignment = db.query(TeachingAssignment).filter(TeachingAssignment.id == assignment_id).first()
    if not assignment:
        raise NotFoundError("teaching_assignment", assignment_id, "ASSIGNMENT_NOT_FOUND")
    return assignment


def create_assignment(
    db: Session,
    identity: Identity,
    class_id: int,
    teacher_id: int,
    discipline_id: int
) -> Dict[str, Any]:
    """
    Link a teacher to a class for one discipline.

    Args:
        db: Database session
        identity: Caller
        class_id: Class being taught
        teacher_id: Teacher taking the class
        discipline_id: Discipline taught

    Returns:
        Created assignment data

    Raises:
        NotFoundError: If the class or discipline does not exist
        Forbidden: If the caller may not manage the class's assignments
        PreconditionFailedError: TEACHER_NOT_IN_SCHOOL if no teacher with this
            id works at the class's school
        ConflictError: ASSIGNMENT_EXISTS if the link already exists
    """
    school_class = db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
    if not school_class:
        raise NotFoundError("class", class_id)
    get_resolver().enforce(identity, Action.CREATE, assignment_resource(school_class, teacher_id))

    if not db.query(Discipline).filter(Discipline.id == discipline_id).first():
        raise NotFoundError("discipline", discipline_id)

    school_id = school_id_of(school_class)
    teacher = (
        db.query(Teacher)
        .filter(Teacher.id == teacher_id)
        .filter(Teacher.school_id == school_id)
        .first()
    ) if school_id is not None else None
    if not teacher:
        raise PreconditionFailedError(
            "The teacher does not work at this class's school",
            TEACHER_NOT_IN_SCHOOL,
        )

    existing = (
        db.query(TeachingAssignment)
        .filter(TeachingAssignment.class_id == class_id)
        .filter(TeachingAssignment.teacher_id == teacher_id)
        .filter(TeachingAssignment.discipline_id == discipline_id)
        .first()
    )
    if existing:
        raise ConflictError("This teacher already teaches this discipline to this class", ASSIGNMENT_EXISTS)

    assignment = TeachingAssignment(
        class_id=class_id,
        teacher_id=teacher_id,
        discipline_id=discipline_id,
    )
    db.add(assignment)
    try:
        commit(db, "create_assignment")
    except IntegrityError as exc:
        raise ConflictError(
            "This teacher already teaches this discipline to this class", ASSIGNMENT_EXISTS
        ) from exc
    db.refresh(assignment)

    logger.info(
        "Teaching assignment %s created class_id=%s teacher_id=%s discipline_id=%s",
        assignment.id, class_id, teacher_id, discipline_id,
    )
    return {
        "success": True,
        "message": "Teaching assignment created",
        "assignment": assignment.to_dict(),
    }


def list_assignments(
    db: Session,
    identity: Identity,
    class_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 50
) -> Dict[str, Any]:
    """
    List the teaching assignments the caller maintains.
    The scope filter is applied before pagination.
    """
    resolver = get_resolver()
    resolver.enforce(identity, Action.READ, school_resource(identity.school_id, ResourceKind.ASSIGNMENT))
    scope = resolver.scope_filter(identity, ListKind.ASSIGNMENTS)

    query = db.query(TeachingAssignment).join(SchoolClass, TeachingAssignment.class_id == SchoolClass.id)
    query = scope.apply(query, school=SchoolClass.school_id, class_=TeachingAssignment.class_id)

    if class_id:
        query = query.filter(TeachingAssignment.class_id == class_id)
    if teacher_id:
        query = query.filter(TeachingAssignment.teacher_id == teacher_id)

    total = query.count()
    assignments = (
        query.order_by(SchoolClass.name, TeachingAssignment.id)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {
        "total": total,
        "offset": offset,
        "limit": limit,
        "assignments": [a.to_dict() for a in assignments],
    }


def delete_assignment(db: Session, identity: Identity, assignment_id: int) -> Dict[str, Any]:
    """Remove a teaching assignment together with its assessments and their grades."""
    assignment = _load_assignment(db, assignment_id)
    get_resolver().enforce(identity, Action.DELETE, existing_assignment_resource(assignment))

    removed_assessments = len(assignment.assessments)
    db.delete(assignment)
    commit(db, "delete_assignment")

    logger.info("Teaching assignment %s deleted with %s assessment(s)", assignment_id, removed_assessments)
    return {
        "success": True,
        "message": "Teaching assignment removed",
        "removed_assessments": removed_assessments,
    }
