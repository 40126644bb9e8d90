"""
Approval rule tools for the Academic Records core.

A rule fixes the minimum average a student needs to pass in one school and
academic year. Reporting only reads rules; coordinators and admins maintain them.
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import ApprovalRule, Coordinator, School
from .authorization import Action, ResourceKind, get_resolver, school_resource
from .exceptions import (
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from .identity import Identity
from .storage import commit

logger = logging.getLogger(__name__)

# Pass threshold when a school has no rule for the year. Not configurable.
DEFAULT_MINIMUM_AVERAGE = 6.0


def _validate_minimum(minimum_average: float) -> None:
    if minimum_average is None or not 0 <= minimum_average <= 10:
        raise ValidationError("Minimum average must be between 0 and 10", "minimum_average")


def resolve_minimum_average(db: Session, school_id: Optional[int], academic_year: int) -> float:
    """
    Minimum average for a school and year.

    Falls back to DEFAULT_MINIMUM_AVERAGE (6.0) when no rule exists.
    """
    rule = None
    if school_id is not None:
        rule = (
            db.query(ApprovalRule)
            .filter(ApprovalRule.school_id == school_id)
            .filter(ApprovalRule.academic_year == academic_year)
            .first()
        )
    if rule is None:
        return DEFAULT_MINIMUM_AVERAGE
    return rule.minimum_average


def list_approval_rules(db: Session, identity: Identity, school_id: int) -> List[Dict[str, Any]]:
    """List the rules of a school, newest year first."""
    if not db.query(School).filter(School.id == school_id).first():
        raise NotFoundError("school", school_id)
    get_resolver().enforce(identity, Action.READ, school_resource(school_id, ResourceKind.APPROVAL_RULE))

    rules = (
        db.query(ApprovalRule)
        .filter(ApprovalRule.school_id == school_id)
        .order_by(ApprovalRule.academic_year.desc())
        .all()
    )
    return [r.to_dict() for r in rules]


def create_approval_rule(
    db: Session,
    identity: Identity,
    school_id: int,
    academic_year: int,
    minimum_average: float,
    coordinator_id: Optional[int] = None
) -> Dict[str, Any]:
    """
    Create the rule for a school and academic year.

    Args:
        db: Database session
        identity: Caller
        school_id: School the rule applies to
        academic_year: Academic year the rule applies to
        minimum_average: Pass threshold in [0, 10]
        coordinator_id: Author; defaults to the calling coordinator

    Raises:
        ValidationError: If minimum_average is out of range
        NotFoundError: If the school or coordinator does not exist
        Forbidden: If the caller may not manage this school's rules
        PreconditionFailedError: If the coordinator belongs to another school
        ConflictError: If the school already has a rule for that year
    """
    _validate_minimum(minimum_average)

    if not db.query(School).filter(School.id == school_id).first():
        raise NotFoundError("school", school_id)
    get_resolver().enforce(identity, Action.CREATE, school_resource(school_id, ResourceKind.APPROVAL_RULE))

    coordinator_id = coordinator_id or identity.coordinator_id
    if coordinator_id is not None:
        coordinator = db.query(Coordinator).filter(Coordinator.id == coordinator_id).first()
        if not coordinator:
            raise NotFoundError("coordinator", coordinator_id)
        if coordinator.school_id != school_id:
            raise PreconditionFailedError(
                "The coordinator does not belong to this school",
                "COORDINATOR_SCHOOL_MISMATCH",
            )

    existing = (
        db.query(ApprovalRule)
        .filter(ApprovalRule.school_id == school_id)
        .filter(ApprovalRule.academic_year == academic_year)
        .first()
    )
    if existing:
        raise ConflictError(
            f"School {school_id} already has an approval rule for {academic_year}",
            "RULE_EXISTS",
        )

    rule = ApprovalRule(
        school_id=school_id,
        academic_year=academic_year,
        minimum_average=minimum_average,
        coordinator_id=coordinator_id,
    )
    db.add(rule)
    try:
        commit(db, "create_approval_rule")
    except IntegrityError as exc:
        raise ConflictError(
            f"School {school_id} already has an approval rule for {academic_year}",
            "RULE_EXISTS",
        ) from exc
    db.refresh(rule)

    logger.info("Approval rule created school_id=%s year=%s", school_id, academic_year)
    return rule.to_dict()


def _load_rule(db: Session, rule_id: int) -> ApprovalRule:
    rule = db.query(ApprovalRule).filter(ApprovalRule.id == rule_id).first()
    if not rule:
        raise NotFoundError("approval_rule", rule_id, "RULE_NOT_FOUND")
    return rule


def update_approval_rule(
    db: Session,
    identity: Identity,
    rule_id: int,
    minimum_average: float
) -> Dict[str, Any]:
    """Change a rule's minimum average."""
    _validate_minimum(minimum_average)

    rule = _load_rule(db, rule_id)
    get_resolver().enforce(identity, Action.UPDATE, school_resource(rule.school_id, ResourceKind.APPROVAL_RULE))

    rule.minimum_average = minimum_average
    commit(db, "update_approval_rule")
    db.refresh(rule)
    return rule.to_dict()


def delete_approval_rule(db: Session, identity: Identity, rule_id: int) -> Dict[str, Any]:
    """Remove a rule; reports fall back to the default threshold."""
    rule = _load_rule(db, rule_id)
    get_resolver().enforce(identity, Action.DELETE, school_resource(rule.school_id, ResourceKind.APPROVAL_RULE))

    db.delete(rule)
    commit(db, "delete_approval_rule")
    return {"success": True, "message": "Approval rule removed"}
