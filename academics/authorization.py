"""
Authorization module for the Academic Records core.
Implements the role-scoped visibility model every read and write goes through.

CRITICAL RULES:
1. Never trust the client for role - the Identity is resolved from the DB
2. Role verb checks come before any scope match
3. Anything whose school cannot be derived is denied (fail closed)
4. Teachers need a teaching-assignment link for class-level detail
5. Students only ever see their own student record and their own class
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from sqlalchemy import false

from database import UserRole, SchoolClass, Student, Assessment, Grade, TeachingAssignment
from .exceptions import Forbidden
from .identity import Identity

logger = logging.getLogger(__name__)

Role = UserRole

ROLE_NOT_PERMITTED = "ROLE_NOT_PERMITTED"
SCOPELESS = "SCOPELESS"
RESOURCE_SCOPELESS = "RESOURCE_SCOPELESS"
OUT_OF_SCOPE = "OUT_OF_SCOPE"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REPORT = "report"


class ResourceKind(str, Enum):
    SCHOOL = "school"
    CLASS = "class"
    STUDENT = "student"
    ASSESSMENT = "assessment"
    GRADE = "grade"
    APPROVAL_RULE = "approval_rule"
    ASSIGNMENT = "assignment"


class ListKind(str, Enum):
    CLASSES = "classes"
    STUDENTS = "students"
    TEACHERS = "teachers"
    ASSESSMENTS = "assessments"
    GRADES = "grades"
    ASSIGNMENTS = "assignments"


_ALL_ACTIONS = frozenset(Action)
_READ = frozenset({Action.READ})
_WRITES = frozenset({Action.CREATE, Action.UPDATE, Action.DELETE})

# Verb sets per role and resource kind. Admins are not listed: they may do anything.
_PERMITTED = {
    Role.COORDINATOR: {kind: _ALL_ACTIONS for kind in ResourceKind},
    Role.TEACHER: {
        ResourceKind.SCHOOL: _READ,
        ResourceKind.CLASS: frozenset({Action.READ, Action.REPORT}),
        ResourceKind.STUDENT: frozenset({Action.READ, Action.REPORT}),
        ResourceKind.ASSESSMENT: _READ | _WRITES,
        ResourceKind.GRADE: _READ | _WRITES,
        ResourceKind.APPROVAL_RULE: _READ,
    },
    Role.STUDENT: {
        ResourceKind.CLASS: _READ,
        ResourceKind.ASSESSMENT: _READ,
        ResourceKind.GRADE: _READ,
        ResourceKind.STUDENT: frozenset({Action.READ, Action.REPORT}),
    },
}

# Kinds a teacher can only see through a teaching-assignment link
_CLASS_LEVEL = frozenset({
    ResourceKind.CLASS,
    ResourceKind.STUDENT,
    ResourceKind.ASSESSMENT,
    ResourceKind.GRADE,
})


@dataclass(frozen=True)
class Resource:
    """
    Descriptor of the target of an operation.

    Attributes:
        kind: What is being accessed
        school_id: Derived owning school, None when it cannot be derived
        class_id: Class the resource belongs to, if any
        student_id: Student the resource is about, if any
        teacher_id: Teacher owning the assignment behind an assessment or grade
    """
    kind: ResourceKind
    school_id: Optional[int]
    class_id: Optional[int] = None
    student_id: Optional[int] = None
    teacher_id: Optional[int] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


Allow = Decision(True)


def Deny(reason: str) -> Decision:
    return Decision(False, reason)


@dataclass(frozen=True)
class ScopeFilter:
    """
    Predicate a bulk listing applies before pagination.

    Unset fields do not constrain. deny_all matches nothing.
    """
    deny_all: bool = False
    school_id: Optional[int] = None
    class_ids: Optional[FrozenSet[int]] = None
    class_id: Optional[int] = None
    student_id: Optional[int] = None

    @property
    def is_unrestricted(self) -> bool:
        return (
            not self.deny_all
            and self.school_id is None
            and self.class_ids is None
            and self.class_id is None
            and self.student_id is None
        )

    def matches(
        self,
        school_id: Optional[int] = None,
        class_id: Optional[int] = None,
        student_id: Optional[int] = None,
    ) -> bool:
        """Evaluate the predicate against in-memory values."""
        if self.deny_all:
            return False
        if self.school_id is not None and school_id != self.school_id:
            return False
        if self.class_ids is not None and class_id not in self.class_ids:
            return False
        if self.class_id is not None and class_id != self.class_id:
            return False
        if self.student_id is not None and student_id != self.student_id:
            return False
        return True

    def apply(self, query, school=None, class_=None, student=None):
        """
        Narrow a SQLAlchemy query with this filter.

        Args:
            query: Query to narrow
            school: Column holding the owning school id
            class_: Column holding the class id
            student: Column holding the student id

        Raises:
            ValueError: If the filter constrains a column the caller did not map
        """
        if self.deny_all:
            return query.filter(false())
        constraints = (
            (self.school_id, school, lambda col: col == self.school_id),
            (self.class_ids, class_, lambda col: col.in_(sorted(self.class_ids))),
            (self.class_id, class_, lambda col: col == self.class_id),
            (self.student_id, student, lambda col: col == self.student_id),
        )
        for value, column, clause in constraints:
            if value is None:
                continue
            if column is None:
                raise ValueError("Scope filter constrains a column the query does not map")
            query = query.filter(clause(column))
        return query


UNRESTRICTED = ScopeFilter()
NOTHING = ScopeFilter(deny_all=True)


class AccessScopeResolver:
    """
    Single policy point for every read and write.

    The resolver is pure: it only looks at the Identity and the Resource
    descriptor, both of which the caller resolves from the database.
    """

    def authorize(self, identity: Identity, action: Action, resource: Resource) -> Decision:
        """
        Decide whether identity may perform action on resource.

        Returns:
            Allow, or Deny with one of ROLE_NOT_PERMITTED, SCOPELESS,
            RESOURCE_SCOPELESS, OUT_OF_SCOPE
        """
        if identity.is_admin:
            return Allow

        permitted = _PERMITTED.get(identity.role, {}).get(resource.kind, frozenset())
        if action not in permitted:
            return Deny(ROLE_NOT_PERMITTED)

        if identity.school_id is None:
            return Deny(SCOPELESS)
        if resource.school_id is None:
            return Deny(RESOURCE_SCOPELESS)
        if resource.school_id != identity.school_id:
            return Deny(OUT_OF_SCOPE)

        if identity.role == Role.TEACHER:
            return self._authorize_teacher(identity, action, resource)
        if identity.role == Role.STUDENT:
            return self._authorize_student(identity, resource)
        return Allow

    def _authorize_teacher(self, identity: Identity, action: Action, resource: Resource) -> Decision:
        if resource.kind not in _CLASS_LEVEL:
            return Allow
        if resource.class_id is None:
            return Deny(RESOURCE_SCOPELESS)
        if resource.class_id not in identity.assigned_class_ids:
            return Deny(OUT_OF_SCOPE)
        # Writes go through the teacher's own assignment
        if action in _WRITES and resource.teacher_id is not None:
            if resource.teacher_id != identity.teacher_id:
                return Deny(OUT_OF_SCOPE)
        return Allow

    def _authorize_student(self, identity: Identity, resource: Resource) -> Decision:
        if resource.kind in (ResourceKind.GRADE, ResourceKind.STUDENT):
            if resource.student_id is None or resource.student_id != identity.student_id:
                return Deny(OUT_OF_SCOPE)
            return Allow
        if resource.class_id is None or resource.class_id != identity.class_id:
            return Deny(OUT_OF_SCOPE)
        return Allow

    def enforce(self, identity: Identity, action: Action, resource: Resource) -> None:
        """
        Authorize or raise.

        Raises:
            Forbidden: With the reason code of the denial
        """
        decision = self.authorize(identity, action, resource)
        if not decision.allowed:
            logger.info(
                "Denied %s on %s for user_id=%s role=%s reason=%s",
                action.value, resource.kind.value, identity.user_id,
                identity.role.value, decision.reason,
            )
            raise Forbidden(decision.reason)

    def scope_filter(self, identity: Identity, list_kind: ListKind) -> ScopeFilter:
        """
        Build the filter a bulk listing of list_kind must apply.

        Teachers see school-wide teacher lists, but class / student /
        assessment / grade lists only for their assigned classes.
        """
        if identity.is_admin:
            return UNRESTRICTED
        if identity.school_id is None:
            return NOTHING

        if identity.role == Role.COORDINATOR:
            return ScopeFilter(school_id=identity.school_id)

        if identity.role == Role.TEACHER:
            if list_kind == ListKind.TEACHERS:
                return ScopeFilter(school_id=identity.school_id)
            return ScopeFilter(
                school_id=identity.school_id,
                class_ids=frozenset(identity.assigned_class_ids),
            )

        if identity.role == Role.STUDENT:
            if list_kind in (ListKind.GRADES, ListKind.STUDENTS):
                return ScopeFilter(school_id=identity.school_id, student_id=identity.student_id)
            if list_kind in (ListKind.CLASSES, ListKind.ASSESSMENTS):
                return ScopeFilter(school_id=identity.school_id, class_id=identity.class_id)

        return NOTHING


def get_resolver() -> AccessScopeResolver:
    """Factory function to create an AccessScopeResolver."""
    return AccessScopeResolver()


# ---------------------------------------------------------------------------
# Resource descriptors derived from stored entities
# ---------------------------------------------------------------------------

def school_resource(school_id: Optional[int], kind: ResourceKind = ResourceKind.SCHOOL) -> Resource:
    return Resource(kind=kind, school_id=school_id)


def school_id_of(school_class: Optional[SchoolClass]) -> Optional[int]:
    """
    Owning school of a class, None when the class or its school is gone.
    Read through the relationship so a stale school_id never grants scope.
    """
    if school_class is None or school_class.school is None:
        return None
    return school_class.school.id


def class_resource(school_class: SchoolClass) -> Resource:
    return Resource(
        kind=ResourceKind.CLASS,
        school_id=school_id_of(school_class),
        class_id=school_class.id,
    )


def student_resource(student: Student) -> Resource:
    """A student's school is the school of the class they are enrolled in."""
    school_class = student.school_class
    return Resource(
        kind=ResourceKind.STUDENT,
        school_id=school_id_of(school_class),
        class_id=student.class_id,
        student_id=student.id,
    )


def assessment_resource(assessment: Assessment) -> Resource:
    assignment = assessment.assignment
    return Resource(
        kind=ResourceKind.ASSESSMENT,
        school_id=school_id_of(assignment.school_class),
        class_id=assignment.class_id,
        teacher_id=assignment.teacher_id,
    )


def grade_resource(assessment: Assessment, student_id: Optional[int]) -> Resource:
    """
    Descriptor for a grade, existing or about to be created.
    The grade's scope is the assessment's class.
    """
    base = assessment_resource(assessment)
    return Resource(
        kind=ResourceKind.GRADE,
        school_id=base.school_id,
        class_id=base.class_id,
        student_id=student_id,
        teacher_id=base.teacher_id,
    )


def existing_grade_resource(grade: Grade) -> Resource:
    return grade_resource(grade.assessment, grade.student_id)


def assignment_resource(school_class: Optional[SchoolClass], teacher_id: Optional[int] = None) -> Resource:
    """Descriptor for a teaching assignment, existing or about to be created."""
    return Resource(
        kind=ResourceKind.ASSIGNMENT,
        school_id=school_id_of(school_class),
        class_id=school_class.id if school_class is not None else None,
        teacher_id=teacher_id,
    )


def existing_assignment_resource(assignment: TeachingAssignment) -> Resource:
    return assignment_resource(assignment.school_class, assignment.teacher_id)
