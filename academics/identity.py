"""
Identity resolution for the Academic Records core.

An Identity is built fresh for every request from the user's current role
bindings and passed explicitly through every call.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional
from sqlalchemy.orm import Session

from database import User, UserRole, TeachingAssignment
from .exceptions import InvalidUserError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """
    Resolved caller of a core operation.
    
    school_id and class_id are derived from the role binding, never stored
    on the user. assigned_class_ids lists the classes a teacher is linked to
    through teaching assignments.
    """
    user_id: int
    role: UserRole
    school_id: Optional[int] = None
    teacher_id: Optional[int] = None
    coordinator_id: Optional[int] = None
    student_id: Optional[int] = None
    class_id: Optional[int] = None
    assigned_class_ids: FrozenSet[int] = field(default_factory=frozenset)
    
    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
    
    @property
    def is_scopeless(self) -> bool:
        """A non-admin without a resolvable school has no scope at all."""
        return not self.is_admin and self.school_id is None
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "role": self.role.value,
            "school_id": self.school_id,
            "teacher_id": self.teacher_id,
            "coordinator_id": self.coordinator_id,
            "student_id": self.student_id,
            "class_id": self.class_id,
            "assigned_class_ids": sorted(self.assigned_class_ids),
        }


def _school_id(bound) -> Optional[int]:
    """School of a role binding, read through the relationship so a dangling id counts as none."""
    school = bound.school if bound is not None else None
    return school.id if school is not None else None


def resolve_identity(db: Session, user_id: int) -> Identity:
    """
    Build the Identity of a user from the database.
    NEVER trust a client-provided role.
    
    Args:
        db: Database session
        user_id: Authenticated user id, as verified by the token collaborator
        
    Returns:
        Identity with derived school / class bindings
        
    Raises:
        InvalidUserError: If the user does not exist or is inactive
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.active:
        raise InvalidUserError(user_id)
    
    role = UserRole(user.role)
    
    if role == UserRole.ADMIN:
        return Identity(user_id=user.id, role=role)
    
    if role == UserRole.COORDINATOR:
        coordinator = user.coordinator
        identity = Identity(
            user_id=user.id,
            role=role,
            coordinator_id=user.coordinator_id,
            school_id=_school_id(coordinator),
        )
    elif role == UserRole.TEACHER:
        teacher = user.teacher
        assigned = frozenset()
        if teacher:
            assigned = frozenset(
                class_id for (class_id,) in (
                    db.query(TeachingAssignment.class_id)
                    .filter(TeachingAssignment.teacher_id == teacher.id)
                    .distinct()
                    .all()
                )
            )
        identity = Identity(
            user_id=user.id,
            role=role,
            teacher_id=user.teacher_id,
            school_id=_school_id(teacher),
            assigned_class_ids=assigned,
        )
    else:
        # Student: class from enrollment, school through the class
        student = user.student
        school_class = student.school_class if student else None
        identity = Identity(
            user_id=user.id,
            role=role,
            student_id=user.student_id,
            class_id=school_class.id if school_class else None,
            school_id=_school_id(school_class),
        )

    if identity.is_scopeless:
        logger.info("Resolved scopeless identity user_id=%s role=%s", user.id, role.value)
    return identity
