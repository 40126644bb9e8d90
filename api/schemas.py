"""
Pydantic schemas for API requests and responses.

Range checks (grade values, weights, minimum averages) are left to the core
so that the same rules and error codes apply to every caller.
"""
from datetime import date
from typing import Optional, List
from pydantic import BaseModel, Field


# Request schemas
class CreateGradeRequest(BaseModel):
    """Request to record a single grade."""
    assessment_id: int = Field(..., description="ID of the assessment")
    student_id: int = Field(..., description="ID of the student")
    value: float = Field(..., description="Grade value (0-10)")


class BatchGradeEntry(BaseModel):
    """One student's grade inside a batch."""
    student_id: int = Field(..., description="ID of the student")
    value: float = Field(..., description="Grade value (0-10)")


class CreateGradesBatchRequest(BaseModel):
    """Request to record a whole roster for one assessment."""
    assessment_id: int = Field(..., description="ID of the assessment")
    grades: List[BatchGradeEntry] = Field(..., description="Grades to record, all or nothing")


class UpdateGradeRequest(BaseModel):
    """Request to change a grade's value."""
    value: float = Field(..., description="New grade value (0-10)")


class CreateAssessmentRequest(BaseModel):
    """Request to create a graded assessment."""
    assignment_id: int = Field(..., description="Teaching assignment (class, teacher, discipline)")
    term_id: int = Field(..., description="Academic term")
    title: str = Field(..., description="Assessment title")
    weight: float = Field(..., description="Positive weight used in averaging")
    applied_on: date = Field(..., description="Date the assessment was applied")
    kind: Optional[str] = Field(None, description="Exam, project, homework...")


class CreateAssignmentRequest(BaseModel):
    """Request to link a teacher to a class for one discipline."""
    class_id: int = Field(..., description="Class being taught")
    teacher_id: int = Field(..., description="Teacher taking the class")
    discipline_id: int = Field(..., description="Discipline taught")


class CreateApprovalRuleRequest(BaseModel):
    """Request to create an approval rule."""
    school_id: int = Field(..., description="School the rule applies to")
    academic_year: int = Field(..., description="Academic year the rule applies to")
    minimum_average: float = Field(..., description="Minimum average to pass (0-10)")
    coordinator_id: Optional[int] = Field(None, description="Authoring coordinator")


class UpdateApprovalRuleRequest(BaseModel):
    """Request to change a rule's threshold."""
    minimum_average: float = Field(..., description="Minimum average to pass (0-10)")


# Response schemas
class GradeResponse(BaseModel):
    """Single grade response."""
    id: int
    assessment_id: int
    assessment_title: Optional[str]
    student_id: int
    student_name: Optional[str]
    value: float
    updated_by: Optional[int]
    updated_at: Optional[str]


class GradesListResponse(BaseModel):
    """Page of grades."""
    total: int
    offset: int
    limit: int
    grades: List[GradeResponse]


class ReportEntry(BaseModel):
    """One graded assessment on a report card."""
    assessment_id: int
    assessment: str
    discipline: str
    teacher: str
    term: str
    term_starts_on: str
    applied_on: str
    value: float
    weight: float


class StudentReportResponse(BaseModel):
    """Report card (boletim) of one student."""
    student: dict
    class_: Optional[dict] = Field(None, alias="class")
    school: Optional[dict]
    entries: List[ReportEntry]
    average: float
    total_assessments: int
    minimum_average: float
    status: str


class ClassReportResponse(BaseModel):
    """Class performance report."""
    class_: dict = Field(..., alias="class")
    school: Optional[dict]
    total_students: int
    graded_students: int
    total_assessments: int
    minimum_average: float
    average: float
    disciplines: List[dict]
    students: List[dict]


class SchoolStatisticsResponse(BaseModel):
    """School statistics."""
    school: dict
    total_classes: int
    total_students: int
    total_teachers: int
    total_coordinators: int
    total_disciplines: int
    total_assessments: int
    average: float
    classes_by_grade_level: List[dict]
    class_performance: List[dict]

