"""
Grade writing tools for the Academic Records core.

CRITICAL RULES:
1. At most one grade per (assessment, student)
2. The student must be enrolled in the assessment's class
3. A batch is all-or-nothing and reports every offending student
4. A student id outside the assessment's class gets the same answer whether
   or not it exists, so writes reveal nothing about other schools
"""
import logging
from typing import Any, Dict, Iterable, List
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Assessment, Grade, Student
from .authorization import Action, existing_grade_resource, get_resolver, grade_resource
from .exceptions import (
    BatchRejectedError,
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from .identity import Identity
from .storage import commit

logger = logging.getLogger(__name__)

GRADE_EXISTS = "GRADE_EXISTS"
DUPLICATE_IN_BATCH = "DUPLICATE_IN_BATCH"
STUDENT_NOT_IN_CLASS = "STUDENT_NOT_IN_CLASS"

def validate_grade_value(value: float, field: str = "value") -> None:
    """Grades live in [0, 10]."""
    if value is None or not 0 <= value <= 10:
        raise ValidationError("Grade value must be between 0 and 10", field)


def _load_assessment(db: Session, assessment_id: int) -> Assessment:
    assessment = db.query(Assessment).filter(Assessment.id == assessment_id).first()
    if not assessment:
        raise NotFoundError("assessment", assessment_id)
    return assessment


def _load_grade(db: Session, grade_id: int) -> Grade:
    grade = db.query(Grade).filter(Grade.id == grade_id).first()
    if not grade:
        raise NotFoundError("grade", grade_id)
    return grade


def create_grade(
    db: Session,
    identity: Identity,
    assessment_id: int,
    student_id: int,
    value: float
) -> Dict[str, Any]:
    """
    Record one grade.

    Args:
        db: Database session
        identity: Caller
        assessment_id: Assessment being graded
        student_id: Student receiving the grade
        value: Grade in [0, 10]

    Returns:
        Created grade data

    Raises:
        ValidationError: If value is out of range
        NotFoundError: If the assessment does not exist
        Forbidden: If the caller may not grade this assessment
        PreconditionFailedError: If no student with this id is enrolled in the
            assessment's class, whether or not the id exists elsewhere
        ConflictError: If the student already has a grade for this assessment
    """
    validate_grade_value(value)

    assessment = _load_assessment(db, assessment_id)
    get_resolver().enforce(identity, Action.CREATE, grade_resource(assessment, student_id))

    # Precondition check immediately followed by the write
    enrolled = (
        db.query(Student.id)
        .filter(Student.id == student_id)
        .filter(Student.class_id == assessment.assignment.class_id)
        .first()
    )
    if not enrolled:
        raise PreconditionFailedError(
            "The student is not enrolled in this assessment's class",
            STUDENT_NOT_IN_CLASS,
        )

    existing = (
        db.query(Grade)
        .filter(Grade.assessment_id == assessment_id)
        .filter(Grade.student_id == student_id)
        .first()
    )
    if existing:
        raise ConflictError("A grade already exists for this student and assessment", GRADE_EXISTS)

    grade = Grade(
        assessment_id=assessment_id,
        student_id=student_id,
        value=value,
        updated_by=identity.user_id,
    )
    db.add(grade)
    try:
        commit(db, "create_grade")
    except IntegrityError as exc:
        # Lost a race against a concurrent insert of the same pair
        raise ConflictError(
            "A grade already exists for this student and assessment", GRADE_EXISTS
        ) from exc
    db.refresh(grade)

    return {
        "success": True,
        "message": "Grade recorded",
        "grade": grade.to_dict(),
    }


def _batch_offenders(
    db: Session,
    assessment: Assessment,
    student_ids: List[int]
) -> List[Dict[str, Any]]:
    """Every student in the batch that would break a write precondition."""
    offenders = []
    seen = set()
    duplicates = set()
    for student_id in student_ids:
        if student_id in seen:
            duplicates.add(student_id)
        seen.add(student_id)

    class_id = assessment.assignment.class_id
    enrolled = {
        student_id for (student_id,) in (
            db.query(Student.id)
            .filter(Student.id.in_(seen))
            .filter(Student.class_id == class_id)
            .all()
        )
    } if seen else set()
    already_graded = {
        student_id for (student_id,) in (
            db.query(Grade.student_id)
            .filter(Grade.assessment_id == assessment.id)
            .filter(Grade.student_id.in_(seen))
            .all()
        )
    } if seen else set()

    for student_id in sorted(seen):
        if student_id not in enrolled:
            code = STUDENT_NOT_IN_CLASS
        elif student_id in already_graded:
            code = GRADE_EXISTS
        elif student_id in duplicates:
            code = DUPLICATE_IN_BATCH
        else:
            continue
        offenders.append({"student_id": student_id, "code": code})
    return offenders


def create_grades_batch(
    db: Session,
    identity: Identity,
    assessment_id: int,
    grades: Iterable[Dict[str, Any]]
) -> Dict[str, Any]:
    """
    Record the grades of a whole roster for one assessment.

    Either every grade in the batch is committed or none is.

    Args:
        db: Database session
        identity: Caller
        assessment_id: Assessment being graded
        grades: Entries of the form {"student_id": int, "value": float}

    Returns:
        The created grades

    Raises:
        ValidationError: If the batch is empty or a value is out of range
        NotFoundError: If the assessment does not exist
        Forbidden: If the caller may not grade this assessment
        BatchRejectedError: Listing every offending student
    """
    entries = list(grades)
    if not entries:
        raise ValidationError("The batch contains no grades", "grades")
    for index, entry in enumerate(entries):
        if entry.get("student_id") is None:
            raise ValidationError("Every entry needs a student_id", f"grades[{index}].student_id")
        validate_grade_value(entry.get("value"), f"grades[{index}].value")

    assessment = _load_assessment(db, assessment_id)
    get_resolver().enforce(identity, Action.CREATE, grade_resource(assessment, None))

    student_ids = [entry["student_id"] for entry in entries]
    offenders = _batch_offenders(db, assessment, student_ids)
    if offenders:
        logger.info(
            "Grade batch for assessment %s rejected: %s offender(s)",
            assessment_id, len(offenders),
        )
        raise BatchRejectedError(offenders)

    created = [
        Grade(
            assessment_id=assessment_id,
            student_id=entry["student_id"],
            value=entry["value"],
            updated_by=identity.user_id,
        )
        for entry in entries
    ]
    db.add_all(created)
    try:
        commit(db, "create_grades_batch")
    except IntegrityError as exc:
        # A concurrent writer got in between; report the rows now in the way
        offenders = _batch_offenders(db, assessment, student_ids)
        raise BatchRejectedError(
            offenders or [{"student_id": sid, "code": GRADE_EXISTS} for sid in student_ids]
        ) from exc

    for grade in created:
        db.refresh(grade)

    logger.info("Grade batch for assessment %s recorded %s grade(s)", assessment_id, len(created))
    return {
        "success": True,
        "message": f"{len(created)} grades recorded",
        "grades": [g.to_dict() for g in created],
    }


def update_grade(
    db: Session,
    identity: Identity,
    grade_id: int,
    value: float
) -> Dict[str, Any]:
    """
    Change the value of an existing grade. The value is the only mutable field.
    """
    validate_grade_value(value)

    grade = _load_grade(db, grade_id)
    get_resolver().enforce(identity, Action.UPDATE, existing_grade_resource(grade))

    grade.value = value
    grade.updated_by = identity.user_id
    commit(db, "update_grade")
    db.refresh(grade)

    return {
        "success": True,
        "message": "Grade updated",
        "grade": grade.to_dict(),
    }


def delete_grade(db: Session, identity: Identity, grade_id: int) -> Dict[str, Any]:
    """Remove a grade."""
    grade = _load_grade(db, grade_id)
    get_resolver().enforce(identity, Action.DELETE, existing_grade_resource(grade))

    db.delete(grade)
    commit(db, "delete_grade")

    return {"success": True, "message": "Grade removed"}
