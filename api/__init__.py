"""API module for the Academic Records system."""
from .routes import (
    reports_router,
    grades_router,
    assessments_router,
    assignments_router,
    classes_router,
    rules_router,
    get_identity,
    to_http_exception,
)
from .schemas import (
    CreateGradeRequest,
    BatchGradeEntry,
    CreateGradesBatchRequest,
    UpdateGradeRequest,
    CreateAssessmentRequest,
    CreateAssignmentRequest,
    CreateApprovalRuleRequest,
    UpdateApprovalRuleRequest,
    GradeResponse,
    GradesListResponse,
    StudentReportResponse,
    ClassReportResponse,
    SchoolStatisticsResponse,
)

__all__ = [
    "reports_router",
    "grades_router",
    "assessments_router",
    "assignments_router",
    "classes_router",
    "rules_router",
    "get_identity",
    "to_http_exception",
    "CreateGradeRequest",
    "BatchGradeEntry",
    "CreateGradesBatchRequest",
    "UpdateGradeRequest",
    "CreateAssessmentRequest",
    "CreateAssignmentRequest",
    "CreateApprovalRuleRequest",
    "UpdateApprovalRuleRequest",
    "GradeResponse",
    "GradesListResponse",
    "StudentReportResponse",
    "ClassReportResponse",
    "SchoolStatisticsResponse",
]
