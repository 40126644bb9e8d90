"""
Assessment tools for the Academic Records core.

The exam file attached to an assessment is handed over by the upload
collaborator as an opaque blob; it is stored and returned untouched.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional, Tuple
from sqlalchemy.orm import Session

from database import Assessment, SchoolClass, TeachingAssignment, Term
from .authorization import (
    Action,
    ListKind,
    Resource,
    ResourceKind,
    assessment_resource,
    get_resolver,
    school_id_of,
)
from .exceptions import NotFoundError, PreconditionFailedError, ValidationError
from .identity import Identity
from .storage import commit

logger = logging.getLogger(__name__)

TERM_MISMATCH = "TERM_MISMATCH"


def _load_assessment(db: Session, assessment_id: int) -> Assessment:
    assessment = db.query(Assessment).filter(Assessment.id == assessment_id).first()
    if not assessment:
        raise NotFoundError("assessment", assessment_id)
    return assessment


def create_assessment(
    db: Session,
    identity: Identity,
    assignment_id: int,
    term_id: int,
    title: str,
    weight: float,
    applied_on: date,
    kind: Optional[str] = None,
    file_data: Optional[bytes] = None,
    file_name: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create a graded assessment for a teaching assignment.

    AUTHORIZATION: admins, coordinators of the class's school, and the
    teacher owning the assignment.

    Raises:
        ValidationError: If weight is not positive or title is empty
        NotFoundError: If the assignment or term does not exist
        Forbidden: If the caller may not create assessments for that class
        PreconditionFailedError: TERM_MISMATCH if the term belongs to another
            school or academic year
    """
    if weight is None or weight <= 0:
        raise ValidationError("Assessment weight must be positive", "weight")
    if not title or not title.strip():
        raise ValidationError("Assessment title is required", "title")

    assignment = db.query(TeachingAssignment).filter(TeachingAssignment.id == assignment_id).first()
    if not assignment:
        raise NotFoundError("teaching_assignment", assignment_id, "ASSIGNMENT_NOT_FOUND")

    school_class = assignment.school_class
    school_id = school_id_of(school_class)
    get_resolver().enforce(
        identity,
        Action.CREATE,
        Resource(
            kind=ResourceKind.ASSESSMENT,
            school_id=school_id,
            class_id=assignment.class_id,
            teacher_id=assignment.teacher_id,
        ),
    )

    term = db.query(Term).filter(Term.id == term_id).first()
    if not term:
        raise NotFoundError("term", term_id)
    # Terms without a school are shared by the whole network
    if term.school_id is not None and term.school_id != school_id:
        raise PreconditionFailedError("The term belongs to another school", TERM_MISMATCH)
    if term.academic_year != school_class.academic_year:
        raise PreconditionFailedError("The term is not in the class's academic year", TERM_MISMATCH)

    assessment = Assessment(
        assignment_id=assignment_id,
        term_id=term_id,
        title=title.strip(),
        kind=kind,
        weight=weight,
        applied_on=applied_on,
        file_data=file_data,
        # file_name doubles as the "has a file" marker so listings never load the blob
        file_name=(file_name or "exam.pdf") if file_data is not None else None,
    )
    db.add(assessment)
    commit(db, "create_assessment")
    db.refresh(assessment)

    logger.info("Assessment %s created on assignment %s", assessment.id, assignment_id)
    return assessment.to_dict()


def get_assessment(db: Session, identity: Identity, assessment_id: int) -> Dict[str, Any]:
    """Get one assessment, without its file."""
    assessment = _load_assessment(db, assessment_id)
    get_resolver().enforce(identity, Action.READ, assessment_resource(assessment))
    return assessment.to_dict()


def list_assessments(
    db: Session,
    identity: Identity,
    class_id: Optional[int] = None,
    term_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 50
) -> Dict[str, Any]:
    """
    List assessments visible to the caller, most recent first.
    The scope filter is applied before pagination.
    """
    scope = get_resolver().scope_filter(identity, ListKind.ASSESSMENTS)

    query = (
        db.query(Assessment)
        .join(TeachingAssignment, Assessment.assignment_id == TeachingAssignment.id)
        .join(SchoolClass, TeachingAssignment.class_id == SchoolClass.id)
    )
    query = scope.apply(query, school=SchoolClass.school_id, class_=TeachingAssignment.class_id)

    if class_id:
        query = query.filter(TeachingAssignment.class_id == class_id)
    if term_id:
        query = query.filter(Assessment.term_id == term_id)

    total = query.count()
    assessments = (
        query.order_by(Assessment.applied_on.desc(), Assessment.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {
        "total": total,
        "offset": offset,
        "limit": limit,
        "assessments": [a.to_dict() for a in assessments],
    }


def delete_assessment(db: Session, identity: Identity, assessment_id: int) -> Dict[str, Any]:
    """
    Delete an assessment together with all of its grades.
    """
    assessment = _load_assessment(db, assessment_id)
    get_resolver().enforce(identity, Action.DELETE, assessment_resource(assessment))

    removed_grades = len(assessment.grades)
    db.delete(assessment)
    commit(db, "delete_assessment")

    logger.info("Assessment %s deleted with %s grade(s)", assessment_id, removed_grades)
    return {
        "success": True,
        "message": "Assessment removed",
        "removed_grades": removed_grades,
    }


def get_assessment_file(db: Session, identity: Identity, assessment_id: int) -> Tuple[bytes, str]:
    """
    Fetch the exam file of an assessment.

    Returns:
        (contents, filename)

    Raises:
        NotFoundError: FILE_NOT_FOUND when the assessment has no file
    """
    assessment = _load_assessment(db, assessment_id)
    get_resolver().enforce(identity, Action.READ, assessment_resource(assessment))

    if assessment.file_data is None:
        raise NotFoundError("assessment_file", assessment_id, "FILE_NOT_FOUND")

    filename = assessment.file_name or f"assessment_{assessment.id}_{assessment.title.replace(' ', '_')}.pdf"
    return assessment.file_data, filename
