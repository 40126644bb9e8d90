"""
Reporting tools for the Academic Records core.

Averages are weighted within a student (sum of value * weight over sum of
weights) and unweighted across students and classes, so one heavy
assessment of one student cannot dominate a class or school figure.
Arithmetic runs on Decimal; only the returned figures are rounded.
"""
import logging
from collections import Counter, defaultdict
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session

from database import (
    Assessment,
    Coordinator,
    Grade,
    School,
    SchoolClass,
    Student,
    Teacher,
    TeachingAssignment,
    Term,
    UserRole,
)
from .approval_rules import resolve_minimum_average
from .authorization import (
    AccessScopeResolver,
    Action,
    ROLE_NOT_PERMITTED,
    class_resource,
    get_resolver,
    school_id_of,
    school_resource,
    student_resource,
)
from .exceptions import Forbidden, NotFoundError
from .identity import Identity

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


class ApprovalStatus(str, Enum):
    APPROVED = "Approved"
    FAILING = "Failing"
    IN_PROGRESS = "InProgress"


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def weighted_average(pairs: Iterable[Tuple[float, float]]) -> Optional[Decimal]:
    """
    Weighted mean of (value, weight) pairs.

    Returns:
        The unrounded average, or None when the weights sum to zero
    """
    total = Decimal(0)
    weights = Decimal(0)
    for value, weight in pairs:
        w = _dec(weight)
        total += _dec(value) * w
        weights += w
    if weights == 0:
        return None
    return total / weights


def mean(values: List[Decimal]) -> Optional[Decimal]:
    """Unweighted mean, None for no values."""
    if not values:
        return None
    return sum(values, Decimal(0)) / len(values)


def round_half_up(value: Optional[Decimal]) -> float:
    """Round to 2 places, half up. A missing average reads as 0."""
    if value is None:
        return 0.0
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def classify(average: Optional[Decimal], total_grades: int, minimum_average: float) -> ApprovalStatus:
    """
    Pass/fail against the minimum average.
    Without any grade the student is in progress, never failing.
    """
    if total_grades == 0 or average is None:
        return ApprovalStatus.IN_PROGRESS
    if average >= _dec(minimum_average):
        return ApprovalStatus.APPROVED
    return ApprovalStatus.FAILING


class AcademicAggregator:
    """
    Computes student, class and school performance.

    Every report authorizes the caller first; a denial surfaces as Forbidden
    and no partial data is returned.
    """

    def __init__(self, db: Session, resolver: Optional[AccessScopeResolver] = None):
        self.db = db
        self.resolver = resolver or get_resolver()

    # ------------------------------------------------------------------
    # Student report (boletim)
    # ------------------------------------------------------------------

    def student_report(self, identity: Identity, student_id: int) -> Dict[str, Any]:
        """
        Report card of one student.

        Entries are ordered by term start date, then by application date.

        Raises:
            NotFoundError: If the student does not exist
            Forbidden: If the student is outside the caller's scope
        """
        student = self.db.query(Student).filter(Student.id == student_id).first()
        if not student:
            raise NotFoundError("student", student_id)
        self.resolver.enforce(identity, Action.REPORT, student_resource(student))

        grades = (
            self.db.query(Grade)
            .join(Assessment, Grade.assessment_id == Assessment.id)
            .join(Term, Assessment.term_id == Term.id)
            .filter(Grade.student_id == student_id)
            .order_by(Term.starts_on.asc(), Assessment.applied_on.asc(), Assessment.id.asc())
            .all()
        )

        average = weighted_average((g.value, g.assessment.weight) for g in grades)

        school_class = student.school_class
        school = school_class.school if school_class else None
        minimum = resolve_minimum_average(
            self.db,
            school.id if school else None,
            school_class.academic_year if school_class else None,
        )

        return {
            "student": {
                "id": student.id,
                "name": student.name,
                "registration": student.registration,
                "birth_date": student.birth_date.isoformat() if student.birth_date else None,
            },
            "class": {
                "id": school_class.id,
                "name": school_class.name,
                "grade_level": school_class.grade_level,
                "academic_year": school_class.academic_year,
                "shift": school_class.shift,
            } if school_class else None,
            "school": {"id": school.id, "name": school.name} if school else None,
            "entries": [self._entry(g) for g in grades],
            "average": round_half_up(average),
            "total_assessments": len(grades),
            "minimum_average": minimum,
            "status": classify(average, len(grades), minimum).value,
        }

    @staticmethod
    def _entry(grade: Grade) -> Dict[str, Any]:
        assessment = grade.assessment
        assignment = assessment.assignment
        return {
            "assessment_id": assessment.id,
            "assessment": assessment.title,
            "discipline": assignment.discipline.name,
            "teacher": assignment.teacher.name,
            "term": assessment.term.name,
            "term_starts_on": assessment.term.starts_on.isoformat(),
            "applied_on": assessment.applied_on.isoformat(),
            "value": grade.value,
            "weight": assessment.weight,
        }

    # ------------------------------------------------------------------
    # Class report
    # ------------------------------------------------------------------

    def class_report(self, identity: Identity, class_id: int) -> Dict[str, Any]:
        """
        Performance of a class per discipline and per student.

        The class average is the unweighted mean of the averages of the
        students that have at least one grade.

        Raises:
            NotFoundError: If the class does not exist
            Forbidden: If the class is outside the caller's scope
        """
        school_class = self.db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
        if not school_class:
            raise NotFoundError("class", class_id)
        self.resolver.enforce(identity, Action.REPORT, class_resource(school_class))

        summary = self._class_summary(school_class)
        school = school_class.school

        return {
            "class": {
                "id": school_class.id,
                "name": school_class.name,
                "grade_level": school_class.grade_level,
                "academic_year": school_class.academic_year,
                "shift": school_class.shift,
            },
            "school": {"id": school.id, "name": school.name} if school else None,
            "total_students": len(summary["students"]),
            "graded_students": summary["graded_students"],
            "total_assessments": summary["total_assessments"],
            "minimum_average": summary["minimum_average"],
            "average": round_half_up(summary["average"]),
            "disciplines": summary["disciplines"],
            "students": summary["students"],
        }

    def _class_summary(self, school_class: SchoolClass) -> Dict[str, Any]:
        """Aggregates of one class; 'average' stays unrounded."""
        rows = (
            self.db.query(Grade, Assessment, TeachingAssignment)
            .join(Assessment, Grade.assessment_id == Assessment.id)
            .join(TeachingAssignment, Assessment.assignment_id == TeachingAssignment.id)
            .filter(TeachingAssignment.class_id == school_class.id)
            .all()
        )

        pairs_by_student = defaultdict(list)
        pairs_by_discipline = defaultdict(list)
        for grade, assessment, assignment in rows:
            pairs_by_student[grade.student_id].append((grade.value, assessment.weight))
            pairs_by_discipline[assignment.discipline_id].append((grade.value, assessment.weight))

        disciplines = {}
        total_assessments = 0
        for assignment in school_class.assignments:
            entry = disciplines.setdefault(assignment.discipline_id, {
                "discipline_id": assignment.discipline_id,
                "discipline": assignment.discipline.name,
                "teachers": set(),
                "total_assessments": 0,
            })
            entry["teachers"].add(assignment.teacher.name)
            entry["total_assessments"] += len(assignment.assessments)
            total_assessments += len(assignment.assessments)

        discipline_rows = []
        for discipline_id, entry in sorted(disciplines.items(), key=lambda item: item[1]["discipline"]):
            average = weighted_average(pairs_by_discipline.get(discipline_id, []))
            discipline_rows.append({
                **entry,
                "teachers": sorted(entry["teachers"]),
                "average": round_half_up(average),
            })

        minimum = resolve_minimum_average(self.db, school_id_of(school_class), school_class.academic_year)

        student_rows = []
        graded_averages = []
        students = sorted(school_class.students, key=lambda s: s.name)
        for student in students:
            pairs = pairs_by_student.get(student.id, [])
            average = weighted_average(pairs)
            if average is not None:
                graded_averages.append(average)
            student_rows.append({
                "student": {
                    "id": student.id,
                    "name": student.name,
                    "registration": student.registration,
                },
                "average": round_half_up(average),
                "total_grades": len(pairs),
                "status": classify(average, len(pairs), minimum).value,
            })

        return {
            "average": mean(graded_averages),
            "graded_students": len(graded_averages),
            "total_assessments": total_assessments,
            "minimum_average": minimum,
            "disciplines": discipline_rows,
            "students": student_rows,
        }

    # ------------------------------------------------------------------
    # School statistics
    # ------------------------------------------------------------------

    def school_statistics(self, identity: Identity, school_id: int) -> Dict[str, Any]:
        """
        Headcounts and performance of a school.

        The school average is the unweighted mean of the class averages,
        over classes with at least one graded student.

        Raises:
            NotFoundError: If the school does not exist
            Forbidden: If the school is outside the caller's scope
        """
        school = self.db.query(School).filter(School.id == school_id).first()
        if not school:
            raise NotFoundError("school", school_id)
        self.resolver.enforce(identity, Action.REPORT, school_resource(school_id))

        classes = (
            self.db.query(SchoolClass)
            .filter(SchoolClass.school_id == school_id)
            .order_by(SchoolClass.name)
            .all()
        )

        total_students = (
            self.db.query(Student)
            .join(SchoolClass, Student.class_id == SchoolClass.id)
            .filter(SchoolClass.school_id == school_id)
            .count()
        )
        total_teachers = self.db.query(Teacher).filter(Teacher.school_id == school_id).count()
        total_coordinators = self.db.query(Coordinator).filter(Coordinator.school_id == school_id).count()
        total_disciplines = (
            self.db.query(TeachingAssignment.discipline_id)
            .join(SchoolClass, TeachingAssignment.class_id == SchoolClass.id)
            .filter(SchoolClass.school_id == school_id)
            .distinct()
            .count()
        )

        total_assessments = 0
        class_averages = []
        class_performance = []
        for school_class in classes:
            summary = self._class_summary(school_class)
            total_assessments += summary["total_assessments"]
            if summary["average"] is not None:
                class_averages.append(summary["average"])
            class_performance.append({
                "class_id": school_class.id,
                "class": school_class.name,
                "grade_level": school_class.grade_level,
                "average": round_half_up(summary["average"]),
                "graded_students": summary["graded_students"],
                "total_students": len(summary["students"]),
            })

        by_grade_level = Counter(c.grade_level or "Unspecified" for c in classes)

        logger.debug("School %s statistics over %s class(es)", school_id, len(classes))
        return {
            "school": {"id": school.id, "name": school.name},
            "total_classes": len(classes),
            "total_students": total_students,
            "total_teachers": total_teachers,
            "total_coordinators": total_coordinators,
            "total_disciplines": total_disciplines,
            "total_assessments": total_assessments,
            "average": round_half_up(mean(class_averages)),
            "classes_by_grade_level": [
                {"grade_level": level, "total": count}
                for level, count in sorted(by_grade_level.items())
            ],
            "class_performance": class_performance,
        }


def get_student_report(db: Session, identity: Identity, student_id: int) -> Dict[str, Any]:
    return AcademicAggregator(db).student_report(identity, student_id)


def get_class_report(db: Session, identity: Identity, class_id: int) -> Dict[str, Any]:
    return AcademicAggregator(db).class_report(identity, class_id)


def get_school_statistics(db: Session, identity: Identity, school_id: int) -> Dict[str, Any]:
    return AcademicAggregator(db).school_statistics(identity, school_id)


def get_my_report(db: Session, identity: Identity) -> Dict[str, Any]:
    """
    Convenience function for students to get their own report card.
    Always uses the caller's own student id.
    """
    if identity.role != UserRole.STUDENT or identity.student_id is None:
        raise Forbidden(ROLE_NOT_PERMITTED)
    return get_student_report(db, identity, identity.student_id)
