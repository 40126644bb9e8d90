"""
HTTP tests for the Academic Records API.
"""
from database import Grade


def headers(world, key):
    return {"X-User-Id": str(world.users[key].id)}


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "online"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestIdentityHeader:

    def test_missing_header(self, client, world):
        assert client.get("/classes").status_code == 422

    def test_unknown_user(self, client, world):
        response = client.get("/classes", headers={"X-User-Id": "9999"})
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_USER"

    def test_inactive_user(self, client, world):
        response = client.get("/classes", headers=headers(world, "inactive"))
        assert response.status_code == 401


class TestGradeEndpoints:

    def test_create_and_report(self, client, world, make_assessment):
        exam = make_assessment(world.assignment_a1, world.term1, weight=2.0)

        response = client.post(
            "/grades/",
            json={"assessment_id": exam.id, "student_id": world.s1.id, "value": 8.0},
            headers=headers(world, "teacher_a"),
        )
        assert response.status_code == 201
        assert response.json()["grade"]["value"] == 8.0

        report = client.get(f"/reports/students/{world.s1.id}", headers=headers(world, "student_1"))
        assert report.status_code == 200
        body = report.json()
        assert body["average"] == 8.0
        assert body["status"] == "Approved"
        assert body["class"]["id"] == world.class_a1.id

    def test_student_write_forbidden(self, client, world, make_assessment):
        exam = make_assessment(world.assignment_a1, world.term1)
        response = client.post(
            "/grades/",
            json={"assessment_id": exam.id, "student_id": world.s1.id, "value": 10},
            headers=headers(world, "student_1"),
        )
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "ROLE_NOT_PERMITTED"

    def test_out_of_range_value(self, client, world, make_assessment):
        exam = make_assessment(world.assignment_a1, world.term1)
        response = client.post(
            "/grades/",
            json={"assessment_id": exam.id, "student_id": world.s1.id, "value": 11},
            headers=headers(world, "teacher_a"),
        )
        assert response.status_code == 400

    def test_duplicate_grade(self, client, world, make_assessment):
        exam = make_assessment(world.assignment_a1, world.term1)
        payload = {"assessment_id": exam.id, "student_id": world.s1.id, "value": 7}
        client.post("/grades/", json=payload, headers=headers(world, "teacher_a"))

        response = client.post("/grades/", json=payload, headers=headers(world, "teacher_a"))
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "GRADE_EXISTS"

    def test_student_not_in_class(self, client, world, make_assessment):
        exam = make_assessment(world.assignment_a1, world.term1)
        response = client.post(
            "/grades/",
            json={"assessment_id": exam.id, "student_id": world.s4.id, "value": 7},
            headers=headers(world, "teacher_a"),
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "STUDENT_NOT_IN_CLASS"

    def test_batch_rejected_lists_offenders(self, client, db, world, make_assessment):
        exam = make_assessment(world.assignment_a1, world.term1)
        db.add(Grade(assessment_id=exam.id, student_id=world.s3.id, value=5))
        db.commit()

        response = client.post(
            "/grades/batch",
            json={
                "assessment_id": exam.id,
                "grades": [
                    {"student_id": world.s1.id, "value": 7},
                    {"student_id": world.s2.id, "value": 8},
                    {"student_id": world.s3.id, "value": 9},
                ],
            },
            headers=headers(world, "teacher_a"),
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["offenders"] == [{"student_id": world.s3.id, "code": "GRADE_EXISTS"}]
        assert db.query(Grade).count() == 1

    def test_missing_grade(self, client, world):
        response = client.get("/grades/9999", headers=headers(world, "admin"))
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "GRADE_NOT_FOUND"

    def test_update_grade(self, client, db, world, make_assessment):
        exam = make_assessment(world.assignment_a1, world.term1)
        grade = Grade(assessment_id=exam.id, student_id=world.s1.id, value=5)
        db.add(grade)
        db.commit()

        response = client.patch(
            f"/grades/{grade.id}",
            json={"value": 6.5},
            headers=headers(world, "teacher_a"),
        )
        assert response.status_code == 200
        assert response.json()["grade"]["value"] == 6.5

    def test_list_grades_scoped(self, client, db, world, make_assessment):
        a1 = make_assessment(world.assignment_a1, world.term1)
        b1 = make_assessment(world.assignment_b1, world.term_b)
        db.add_all([
            Grade(assessment_id=a1.id, student_id=world.s1.id, value=7),
            Grade(assessment_id=b1.id, student_id=world.s5.id, value=9),
        ])
        db.commit()

        response = client.get("/grades/", headers=headers(world, "coordinator_b"))
        assert response.status_code == 200
        assert [g["student_id"] for g in response.json()["grades"]] == [world.s5.id]


class TestReportEndpoints:

    def test_my_report(self, client, world):
        response = client.get("/reports/me", headers=headers(world, "student_1"))
        assert response.status_code == 200
        assert response.json()["status"] == "InProgress"

    def test_cross_school_student_lookup(self, client, world):
        response = client.get(f"/reports/students/{world.s5.id}", headers=headers(world, "coordinator_a"))
        assert response.status_code == 403
        assert response.json()["detail"] == {"message": "Access denied: OUT_OF_SCOPE", "code": "OUT_OF_SCOPE"}

    def test_missing_student(self, client, world):
        response = client.get("/reports/students/9999", headers=headers(world, "coordinator_a"))
        assert response.status_code == 404

    def test_class_report(self, client, world):
        response = client.get(f"/reports/classes/{world.class_a1.id}", headers=headers(world, "teacher_a"))
        assert response.status_code == 200
        assert response.json()["total_students"] == 3

    def test_school_statistics(self, client, world):
        response = client.get(f"/reports/schools/{world.school_a.id}", headers=headers(world, "coordinator_a"))
        assert response.status_code == 200
        assert response.json()["total_classes"] == 2


class TestAssessmentAndRuleEndpoints:

    def test_create_assessment(self, client, world):
        response = client.post(
            "/assessments/",
            json={
                "assignment_id": world.assignment_a1.id,
                "term_id": world.term1.id,
                "title": "Midterm",
                "weight": 3,
                "applied_on": "2025-04-01",
            },
            headers=headers(world, "teacher_a"),
        )
        assert response.status_code == 201
        assert response.json()["weight"] == 3

    def test_download_file(self, client, world, make_assessment):
        exam = make_assessment(world.assignment_a1, world.term1, file_data=b"%PDF", file_name="midterm.pdf")
        response = client.get(f"/assessments/{exam.id}/file", headers=headers(world, "student_1"))
        assert response.status_code == 200
        assert response.content == b"%PDF"
        assert "midterm.pdf" in response.headers["content-disposition"]

    def test_create_rule(self, client, world):
        response = client.post(
            "/approval-rules/",
            json={"school_id": world.school_a.id, "academic_year": 2025, "minimum_average": 7},
            headers=headers(world, "coordinator_a"),
        )
        assert response.status_code == 201

        listed = client.get(f"/approval-rules/schools/{world.school_a.id}", headers=headers(world, "teacher_a"))
        assert listed.json()[0]["minimum_average"] == 7

    def test_teachers_of_school(self, client, world):
        response = client.get(f"/schools/{world.school_a.id}/teachers", headers=headers(world, "teacher_a2"))
        assert response.status_code == 200
        assert response.json()["total_teachers"] == 2


class TestAssignmentEndpoints:

    def test_coordinator_creates_and_lists(self, client, world):
        response = client.post(
            "/assignments/",
            json={
                "class_id": world.class_a2.id,
                "teacher_id": world.teacher_a.id,
                "discipline_id": world.math.id,
            },
            headers=headers(world, "coordinator_a"),
        )
        assert response.status_code == 201
        assert response.json()["assignment"]["teacher_name"] == "Ana Souza"

        listing = client.get(
            f"/assignments/?class_id={world.class_a2.id}",
            headers=headers(world, "coordinator_a"),
        )
        assert listing.status_code == 200
        assert listing.json()["total"] == 2

    def test_duplicate_is_conflict(self, client, world):
        response = client.post(
            "/assignments/",
            json={
                "class_id": world.class_a1.id,
                "teacher_id": world.teacher_a.id,
                "discipline_id": world.math.id,
            },
            headers=headers(world, "coordinator_a"),
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "ASSIGNMENT_EXISTS"

    def test_foreign_teacher_is_precondition(self, client, world):
        response = client.post(
            "/assignments/",
            json={
                "class_id": world.class_a1.id,
                "teacher_id": world.teacher_b.id,
                "discipline_id": world.portuguese.id,
            },
            headers=headers(world, "coordinator_a"),
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "TEACHER_NOT_IN_SCHOOL"

    def test_teacher_cannot_manage(self, client, world):
        response = client.delete(
            f"/assignments/{world.assignment_a1.id}",
            headers=headers(world, "teacher_a"),
        )
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "ROLE_NOT_PERMITTED"

    def test_delete(self, client, world):
        response = client.delete(
            f"/assignments/{world.assignment_a2.id}",
            headers=headers(world, "coordinator_a"),
        )
        assert response.status_code == 200
        assert response.json()["removed_assessments"] == 0
