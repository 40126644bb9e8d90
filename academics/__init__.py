"""
Academic Records core.

Role-scoped authorization plus weighted-grade aggregation. Every public
function takes the caller's Identity explicitly and authorizes through the
AccessScopeResolver before touching data.
"""
from .exceptions import (
    AcademicError,
    ValidationError,
    NotFoundError,
    Forbidden,
    ConflictError,
    PreconditionFailedError,
    BatchRejectedError,
    InvalidUserError,
    InternalError,
)

from .identity import Identity, resolve_identity

from .authorization import (
    AccessScopeResolver,
    Action,
    Allow,
    Decision,
    Deny,
    ListKind,
    Resource,
    ResourceKind,
    Role,
    ScopeFilter,
    get_resolver,
    ROLE_NOT_PERMITTED,
    SCOPELESS,
    RESOURCE_SCOPELESS,
    OUT_OF_SCOPE,
)

from .approval_rules import (
    DEFAULT_MINIMUM_AVERAGE,
    resolve_minimum_average,
    list_approval_rules,
    create_approval_rule,
    update_approval_rule,
    delete_approval_rule,
)

from .assessments import (
    create_assessment,
    get_assessment,
    list_assessments,
    delete_assessment,
    get_assessment_file,
)

from .assignments import (
    create_assignment,
    list_assignments,
    delete_assignment,
)

from .grades_write import (
    create_grade,
    create_grades_batch,
    update_grade,
    delete_grade,
)

from .grades_read import (
    get_grade,
    list_grades,
    list_grades_by_assessment,
    list_grades_by_student,
)

from .classes import (
    list_classes,
    get_class,
    list_class_students,
    list_school_teachers,
)

from .reporting import (
    AcademicAggregator,
    ApprovalStatus,
    weighted_average,
    round_half_up,
    classify,
    get_student_report,
    get_class_report,
    get_school_statistics,
    get_my_report,
)

__all__ = [
    # Exceptions
    "AcademicError",
    "ValidationError",
    "NotFoundError",
    "Forbidden",
    "ConflictError",
    "PreconditionFailedError",
    "BatchRejectedError",
    "InvalidUserError",
    "InternalError",
    # Identity
    "Identity",
    "resolve_identity",
    # Authorization
    "AccessScopeResolver",
    "Action",
    "Allow",
    "Decision",
    "Deny",
    "ListKind",
    "Resource",
    "ResourceKind",
    "Role",
    "ScopeFilter",
    "get_resolver",
    "ROLE_NOT_PERMITTED",
    "SCOPELESS",
    "RESOURCE_SCOPELESS",
    "OUT_OF_SCOPE",
    # Approval rules
    "DEFAULT_MINIMUM_AVERAGE",
    "resolve_minimum_average",
    "list_approval_rules",
    "create_approval_rule",
    "update_approval_rule",
    "delete_approval_rule",
    # Assessments
    "create_assessment",
    "get_assessment",
    "list_assessments",
    "delete_assessment",
    "get_assessment_file",
    # Teaching assignments
    "create_assignment",
    "list_assignments",
    "delete_assignment",
    # Grades Write
    "create_grade",
    "create_grades_batch",
    "update_grade",
    "delete_grade",
    # Grades Read
    "get_grade",
    "list_grades",
    "list_grades_by_assessment",
    "list_grades_by_student",
    # Classes
    "list_classes",
    "get_class",
    "list_class_students",
    "list_school_teachers",
    # Reporting
    "AcademicAggregator",
    "ApprovalStatus",
    "weighted_average",
    "round_half_up",
    "classify",
    "get_student_report",
    "get_class_report",
    "get_school_statistics",
    "get_my_report",
]
