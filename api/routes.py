"""
API routes for the Academic Records system.

The caller is identified by the X-User-Id header, set by the upstream
token-verification layer; the core resolves role and scope from the
database on every request.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Response
from sqlalchemy.orm import Session

from database import get_db
from academics import (
    AcademicError,
    BatchRejectedError,
    ConflictError,
    Forbidden,
    Identity,
    InternalError,
    InvalidUserError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
    create_approval_rule,
    create_assessment,
    create_assignment,
    create_grade,
    create_grades_batch,
    delete_approval_rule,
    delete_assessment,
    delete_assignment,
    delete_grade,
    get_assessment,
    get_assessment_file,
    get_class,
    get_class_report,
    get_grade,
    get_my_report,
    get_school_statistics,
    get_student_report,
    list_approval_rules,
    list_assessments,
    list_assignments,
    list_class_students,
    list_classes,
    list_grades,
    list_grades_by_assessment,
    list_grades_by_student,
    list_school_teachers,
    resolve_identity,
    update_approval_rule,
    update_grade,
)
from .schemas import (
    CreateGradeRequest,
    CreateGradesBatchRequest,
    UpdateGradeRequest,
    CreateAssessmentRequest,
    CreateAssignmentRequest,
    CreateApprovalRuleRequest,
    UpdateApprovalRuleRequest,
    GradesListResponse,
    StudentReportResponse,
    ClassReportResponse,
    SchoolStatisticsResponse,
)


# Router for report cards and statistics
reports_router = APIRouter(prefix="/reports", tags=["Reports"])

# Router for grades
grades_router = APIRouter(prefix="/grades", tags=["Grades"])

# Router for assessments
assessments_router = APIRouter(prefix="/assessments", tags=["Assessments"])

# Router for teaching assignments
assignments_router = APIRouter(prefix="/assignments", tags=["Teaching Assignments"])

# Router for classes and school-level lists
classes_router = APIRouter(tags=["Classes"])

# Router for approval rules
rules_router = APIRouter(prefix="/approval-rules", tags=["Approval Rules"])


_STATUS_CODES = (
    (InvalidUserError, 401),
    (ValidationError, 400),
    (Forbidden, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (PreconditionFailedError, 422),
    (InternalError, 500),
)


def to_http_exception(exc: AcademicError) -> HTTPException:
    """
    Map a core error to an HTTP error. Reason codes are passed through verbatim.
    """
    detail = {"message": exc.message, "code": exc.code}
    if isinstance(exc, BatchRejectedError):
        detail["offenders"] = exc.offenders
        return HTTPException(status_code=409, detail=detail)
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=detail)
    return HTTPException(status_code=500, detail=detail)


def get_identity(
    x_user_id: int = Header(..., description="Authenticated user id"),
    db: Session = Depends(get_db)
) -> Identity:
    """Resolve the caller's Identity for this request."""
    try:
        return resolve_identity(db, x_user_id)
    except InvalidUserError as exc:
        raise to_http_exception(exc)


# ============== Report Endpoints ==============

@reports_router.get("/me", response_model=StudentReportResponse)
async def my_report(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Report card of the signed-in student."""
    try:
        return get_my_report(db, identity)
    except AcademicError as exc:
        raise to_http_exception(exc)


@reports_router.get("/students/{student_id}", response_model=StudentReportResponse)
async def student_report(
    student_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """
    Report card (boletim) of a student.

    Entries are ordered by term start, then by application date.
    """
    try:
        return get_student_report(db, identity, student_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


@reports_router.get("/classes/{class_id}", response_model=ClassReportResponse)
async def class_report(
    class_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Per-discipline and per-student performance of a class."""
    try:
        return get_class_report(db, identity, class_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


@reports_router.get("/schools/{school_id}", response_model=SchoolStatisticsResponse)
async def school_statistics(
    school_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Headcounts and performance of a school."""
    try:
        return get_school_statistics(db, identity, school_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


# ============== Grade Endpoints ==============

@grades_router.get("/", response_model=GradesListResponse)
async def list_grades_endpoint(
    class_id: Optional[int] = None,
    assessment_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """List the grades visible to the caller."""
    try:
        return list_grades(
            db, identity,
            class_id=class_id,
            assessment_id=assessment_id,
            offset=offset,
            limit=limit
        )
    except AcademicError as exc:
        raise to_http_exception(exc)


@grades_router.post("/", status_code=201)
async def create_grade_endpoint(
    request: CreateGradeRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Record one grade."""
    try:
        return create_grade(
            db, identity,
            assessment_id=request.assessment_id,
            student_id=request.student_id,
            value=request.value
        )
    except AcademicError as exc:
        raise to_http_exception(exc)


@grades_router.post("/batch", status_code=201)
async def create_grades_batch_endpoint(
    request: CreateGradesBatchRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """
    Record a whole roster for one assessment.

    All or nothing: a rejected batch lists every offending student.
    """
    try:
        return create_grades_batch(
            db, identity,
            assessment_id=request.assessment_id,
            grades=[entry.model_dump() for entry in request.grades]
        )
    except AcademicError as exc:
        raise to_http_exception(exc)


@grades_router.get("/students/{student_id}", response_model=GradesListResponse)
async def list_student_grades(
    student_id: int,
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Grades of one student."""
    try:
        return list_grades_by_student(db, identity, student_id, offset=offset, limit=limit)
    except AcademicError as exc:
        raise to_http_exception(exc)


@grades_router.get("/{grade_id}")
async def get_grade_endpoint(
    grade_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return get_grade(db, identity, grade_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


@grades_router.patch("/{grade_id}")
async def update_grade_endpoint(
    grade_id: int,
    request: UpdateGradeRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Change a grade's value."""
    try:
        return update_grade(db, identity, grade_id, value=request.value)
    except AcademicError as exc:
        raise to_http_exception(exc)


@grades_router.delete("/{grade_id}")
async def delete_grade_endpoint(
    grade_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return delete_grade(db, identity, grade_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


# ============== Assessment Endpoints ==============

@assessments_router.get("/")
async def list_assessments_endpoint(
    class_id: Optional[int] = None,
    term_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return list_assessments(
            db, identity,
            class_id=class_id,
            term_id=term_id,
            offset=offset,
            limit=limit
        )
    except AcademicError as exc:
        raise to_http_exception(exc)


@assessments_router.post("/", status_code=201)
async def create_assessment_endpoint(
    request: CreateAssessmentRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Create an assessment. Exam files are attached by the upload service."""
    try:
        return create_assessment(
            db, identity,
            assignment_id=request.assignment_id,
            term_id=request.term_id,
            title=request.title,
            weight=request.weight,
            applied_on=request.applied_on,
            kind=request.kind
        )
    except AcademicError as exc:
        raise to_http_exception(exc)


@assessments_router.get("/{assessment_id}")
async def get_assessment_endpoint(
    assessment_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return get_assessment(db, identity, assessment_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


@assessments_router.delete("/{assessment_id}")
async def delete_assessment_endpoint(
    assessment_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Delete an assessment and all of its grades."""
    try:
        return delete_assessment(db, identity, assessment_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


@assessments_router.get("/{assessment_id}/grades", response_model=None)
async def list_assessment_grades(
    assessment_id: int,
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return list_grades_by_assessment(db, identity, assessment_id, offset=offset, limit=limit)
    except AcademicError as exc:
        raise to_http_exception(exc)


@assessments_router.get("/{assessment_id}/file")
async def download_assessment_file(
    assessment_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Download the exam file attached to an assessment."""
    try:
        contents, filename = get_assessment_file(db, identity, assessment_id)
    except AcademicError as exc:
        raise to_http_exception(exc)
    return Response(
        content=contents,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ============== Class Endpoints ==============

@classes_router.get("/classes")
async def list_classes_endpoint(
    academic_year: Optional[int] = None,
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return list_classes(db, identity, academic_year=academic_year, offset=offset, limit=limit)
    except AcademicError as exc:
        raise to_http_exception(exc)


@classes_router.get("/classes/{class_id}")
async def get_class_endpoint(
    class_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return get_class(db, identity, class_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


@classes_router.get("/classes/{class_id}/students")
async def list_class_students_endpoint(
    class_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return list_class_students(db, identity, class_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


@classes_router.get("/schools/{school_id}/teachers")
async def list_school_teachers_endpoint(
    school_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return list_school_teachers(db, identity, school_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


# ============== Teaching Assignment Endpoints ==============

@assignments_router.get("/")
async def list_assignments_endpoint(
    class_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return list_assignments(
            db, identity,
            class_id=class_id,
            teacher_id=teacher_id,
            offset=offset,
            limit=limit
        )
    except AcademicError as exc:
        raise to_http_exception(exc)


@assignments_router.post("/", status_code=201)
async def create_assignment_endpoint(
    request: CreateAssignmentRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Link a teacher to a class for one discipline. Coordinators and admins only."""
    try:
        return create_assignment(
            db, identity,
            class_id=request.class_id,
            teacher_id=request.teacher_id,
            discipline_id=request.discipline_id
        )
    except AcademicError as exc:
        raise to_http_exception(exc)


@assignments_router.delete("/{assignment_id}")
async def delete_assignment_endpoint(
    assignment_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    """Remove a teaching assignment with its assessments and grades."""
    try:
        return delete_assignment(db, identity, assignment_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


# ============== Approval Rule Endpoints ==============

@rules_router.get("/schools/{school_id}")
async def list_rules_endpoint(
    school_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return list_approval_rules(db, identity, school_id)
    except AcademicError as exc:
        raise to_http_exception(exc)


@rules_router.post("/", status_code=201)
async def create_rule_endpoint(
    request: CreateApprovalRuleRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return create_approval_rule(
            db, identity,
            school_id=request.school_id,
            academic_year=request.academic_year,
            minimum_average=request.minimum_average,
            coordinator_id=request.coordinator_id
        )
    except AcademicError as exc:
        raise to_http_exception(exc)


@rules_router.patch("/{rule_id}")
async def update_rule_endpoint(
    rule_id: int,
    request: UpdateApprovalRuleRequest,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return update_approval_rule(db, identity, rule_id, minimum_average=request.minimum_average)
    except AcademicError as exc:
        raise to_http_exception(exc)


@rules_router.delete("/{rule_id}")
async def delete_rule_endpoint(
    rule_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity)
):
    try:
        return delete_approval_rule(db, identity, rule_id)
    except AcademicError as exc:
        raise to_http_exception(exc)
