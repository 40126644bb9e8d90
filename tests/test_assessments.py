"""
Tests for assessments and their exam files.
"""
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from academics import (
    Forbidden,
    InternalError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
    create_assessment,
    create_grade,
    delete_assessment,
    get_assessment,
    get_assessment_file,
    list_assessments,
    OUT_OF_SCOPE,
    ROLE_NOT_PERMITTED,
)
from database import Assessment, Grade, Term


class TestCreateAssessment:

    def test_teacher_creates_on_own_assignment(self, db, world, identity_of):
        assessment = create_assessment(
            db, identity_of("teacher_a"),
            assignment_id=world.assignment_a1.id,
            term_id=world.term1.id,
            title="  Geometry  ",
            weight=2.0,
            applied_on=date(2025, 3, 10),
            kind="exam",
        )
        assert assessment["title"] == "Geometry"
        assert assessment["class_id"] == world.class_a1.id
        assert assessment["discipline"] == "Mathematics"
        assert assessment["has_file"] is False

    def test_teacher_of_other_class(self, db, world, identity_of):
        with pytest.raises(Forbidden) as exc_info:
            create_assessment(
                db, identity_of("teacher_a2"),
                assignment_id=world.assignment_a1.id,
                term_id=world.term1.id,
                title="Geometry",
                weight=1.0,
                applied_on=date(2025, 3, 10),
            )
        assert exc_info.value.code == OUT_OF_SCOPE

    def test_student_cannot_create(self, db, world, identity_of):
        with pytest.raises(Forbidden) as exc_info:
            create_assessment(
                db, identity_of("student_1"),
                assignment_id=world.assignment_a1.id,
                term_id=world.term1.id,
                title="Geometry",
                weight=1.0,
                applied_on=date(2025, 3, 10),
            )
        assert exc_info.value.code == ROLE_NOT_PERMITTED

    @pytest.mark.parametrize("weight", [0, -1])
    def test_weight_must_be_positive(self, db, world, identity_of, weight):
        with pytest.raises(ValidationError):
            create_assessment(
                db, identity_of("admin"),
                assignment_id=world.assignment_a1.id,
                term_id=world.term1.id,
                title="Geometry",
                weight=weight,
                applied_on=date(2025, 3, 10),
            )

    def test_unknown_assignment(self, db, world, identity_of):
        with pytest.raises(NotFoundError) as exc_info:
            create_assessment(
                db, identity_of("admin"),
                assignment_id=9999,
                term_id=world.term1.id,
                title="Geometry",
                weight=1.0,
                applied_on=date(2025, 3, 10),
            )
        assert exc_info.value.code == "ASSIGNMENT_NOT_FOUND"

    def test_term_of_another_school(self, db, world, identity_of):
        with pytest.raises(PreconditionFailedError) as exc_info:
            create_assessment(
                db, identity_of("admin"),
                assignment_id=world.assignment_a1.id,
                term_id=world.term_b.id,
                title="Geometry",
                weight=1.0,
                applied_on=date(2025, 3, 10),
            )
        assert exc_info.value.code == "TERM_MISMATCH"
        assert db.query(Assessment).count() == 0

    def test_term_of_another_year(self, db, world, identity_of):
        last_year = Term(school_id=world.school_a.id, academic_year=2024, name="1st term",
                         starts_on=date(2024, 2, 1), ends_on=date(2024, 4, 30))
        db.add(last_year)
        db.commit()

        with pytest.raises(PreconditionFailedError) as exc_info:
            create_assessment(
                db, identity_of("teacher_a"),
                assignment_id=world.assignment_a1.id,
                term_id=last_year.id,
                title="Geometry",
                weight=1.0,
                applied_on=date(2024, 3, 10),
            )
        assert exc_info.value.code == "TERM_MISMATCH"

    def test_network_wide_term(self, db, world, identity_of):
        shared = Term(school_id=None, academic_year=2025, name="Recovery week",
                      starts_on=date(2025, 12, 1), ends_on=date(2025, 12, 12))
        db.add(shared)
        db.commit()

        assessment = create_assessment(
            db, identity_of("teacher_a"),
            assignment_id=world.assignment_a1.id,
            term_id=shared.id,
            title="Recovery",
            weight=1.0,
            applied_on=date(2025, 12, 2),
        )
        assert assessment["term_id"] == shared.id

    def test_storage_failure_is_internal(self, db, world, identity_of, monkeypatch):
        def failing_commit():
            raise OperationalError("INSERT INTO assessments", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db, "commit", failing_commit)
        with pytest.raises(InternalError):
            create_assessment(
                db, identity_of("teacher_a"),
                assignment_id=world.assignment_a1.id,
                term_id=world.term1.id,
                title="Geometry",
                weight=1.0,
                applied_on=date(2025, 3, 10),
            )
        monkeypatch.undo()
        assert db.query(Assessment).count() == 0

    def test_file_is_stored_untouched(self, db, world, identity_of):
        contents = b"%PDF-1.4 fake exam"
        assessment = create_assessment(
            db, identity_of("teacher_a"),
            assignment_id=world.assignment_a1.id,
            term_id=world.term1.id,
            title="Geometry",
            weight=1.0,
            applied_on=date(2025, 3, 10),
            file_data=contents,
        )
        assert assessment["has_file"] is True

        data, filename = get_assessment_file(db, identity_of("student_1"), assessment["id"])
        assert data == contents
        assert filename == "exam.pdf"


class TestReadAssessments:

    def test_missing_file(self, db, world, make_assessment, identity_of):
        exam = make_assessment(world.assignment_a1, world.term1)
        with pytest.raises(NotFoundError) as exc_info:
            get_assessment_file(db, identity_of("teacher_a"), exam.id)
        assert exc_info.value.code == "FILE_NOT_FOUND"

    def test_student_reads_own_class_assessment(self, db, world, make_assessment, identity_of):
        exam = make_assessment(world.assignment_a1, world.term1, title="Quiz")
        assert get_assessment(db, identity_of("student_1"), exam.id)["title"] == "Quiz"
        with pytest.raises(Forbidden):
            get_assessment(db, identity_of("student_4"), exam.id)

    def test_listing_is_scoped(self, db, world, make_assessment, identity_of):
        make_assessment(world.assignment_a1, world.term1, title="A1 quiz")
        make_assessment(world.assignment_a2, world.term1, title="A2 quiz")
        make_assessment(world.assignment_b1, world.term_b, title="B1 quiz")

        def titles(key):
            page = list_assessments(db, identity_of(key))
            return sorted(a["title"] for a in page["assessments"])

        assert titles("admin") == ["A1 quiz", "A2 quiz", "B1 quiz"]
        assert titles("coordinator_a") == ["A1 quiz", "A2 quiz"]
        assert titles("teacher_a") == ["A1 quiz"]
        assert titles("student_4") == ["A2 quiz"]
        assert titles("teacher_orphan") == []

    def test_pagination_after_scope(self, db, world, make_assessment, identity_of):
        for index in range(3):
            make_assessment(world.assignment_a1, world.term1, title=f"Quiz {index}")
        make_assessment(world.assignment_b1, world.term_b, title="Other school")

        page = list_assessments(db, identity_of("teacher_a"), offset=0, limit=2)
        assert page["total"] == 3
        assert len(page["assessments"]) == 2


class TestDeleteAssessment:

    def test_grades_removed_with_assessment(self, db, world, make_assessment, identity_of):
        exam = make_assessment(world.assignment_a1, world.term1)
        create_grade(db, identity_of("teacher_a"), exam.id, world.s1.id, 7)
        create_grade(db, identity_of("teacher_a"), exam.id, world.s2.id, 8)

        result = delete_assessment(db, identity_of("coordinator_a"), exam.id)

        assert result["removed_grades"] == 2
        assert db.query(Grade).count() == 0

    def test_other_school_coordinator(self, db, world, make_assessment, identity_of):
        exam = make_assessment(world.assignment_a1, world.term1)
        with pytest.raises(Forbidden):
            delete_assessment(db, identity_of("coordinator_b"), exam.id)
