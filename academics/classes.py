"""
Class tools for the Academic Records core.

Class detail and rosters are class-level resources: teachers need a
teaching assignment for them. Teacher lists are coarse school-level
resources gated by the school alone.
"""
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from database import School, SchoolClass, Student, Teacher
from .authorization import (
    Action,
    ListKind,
    class_resource,
    get_resolver,
    school_resource,
)
from .exceptions import NotFoundError
from .identity import Identity


def _class_to_dict(school_class: SchoolClass) -> Dict[str, Any]:
    return {
        "id": school_class.id,
        "name": school_class.name,
        "grade_level": school_class.grade_level,
        "academic_year": school_class.academic_year,
        "shift": school_class.shift,
        "school_id": school_class.school_id,
    }


def _load_class(db: Session, class_id: int) -> SchoolClass:
    school_class = db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
    if not school_class:
        raise NotFoundError("class", class_id)
    return school_class


def list_classes(
    db: Session,
    identity: Identity,
    academic_year: Optional[int] = None,
    offset: int = 0,
    limit: int = 50
) -> Dict[str, Any]:
    """List the classes visible to the caller, newest year first."""
    scope = get_resolver().scope_filter(identity, ListKind.CLASSES)
    query = scope.apply(db.query(SchoolClass), school=SchoolClass.school_id, class_=SchoolClass.id)

    if academic_year:
        query = query.filter(SchoolClass.academic_year == academic_year)

    total = query.count()
    classes = (
        query.order_by(SchoolClass.academic_year.desc(), SchoolClass.name)
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {
        "total": total,
        "offset": offset,
        "limit": limit,
        "classes": [_class_to_dict(c) for c in classes],
    }


def get_class(db: Session, identity: Identity, class_id: int) -> Dict[str, Any]:
    """Class detail with its teaching assignments."""
    school_class = _load_class(db, class_id)
    get_resolver().enforce(identity, Action.READ, class_resource(school_class))

    result = _class_to_dict(school_class)
    result["assignments"] = [
        {
            "id": a.id,
            "teacher_id": a.teacher_id,
            "teacher_name": a.teacher.name,
            "discipline_id": a.discipline_id,
            "discipline_name": a.discipline.name,
        }
        for a in school_class.assignments
    ]
    result["total_students"] = len(school_class.students)
    return result


def list_class_students(db: Session, identity: Identity, class_id: int) -> Dict[str, Any]:
    """
    Roster of a class. Students only ever get their own entry.
    """
    school_class = _load_class(db, class_id)
    get_resolver().enforce(identity, Action.READ, class_resource(school_class))

    scope = get_resolver().scope_filter(identity, ListKind.STUDENTS)
    query = (
        db.query(Student)
        .join(SchoolClass, Student.class_id == SchoolClass.id)
        .filter(Student.class_id == class_id)
    )
    query = scope.apply(
        query,
        school=SchoolClass.school_id,
        class_=Student.class_id,
        student=Student.id,
    )
    students = query.order_by(Student.name).all()
    return {
        "class": _class_to_dict(school_class),
        "total_students": len(students),
        "students": [
            {"id": s.id, "name": s.name, "registration": s.registration}
            for s in students
        ],
    }


def list_school_teachers(db: Session, identity: Identity, school_id: int) -> Dict[str, Any]:
    """
    Teachers of a school. A coarse list: teachers of the same school see it
    without any teaching assignment.
    """
    school = db.query(School).filter(School.id == school_id).first()
    if not school:
        raise NotFoundError("school", school_id)
    get_resolver().enforce(identity, Action.READ, school_resource(school_id))

    scope = get_resolver().scope_filter(identity, ListKind.TEACHERS)
    query = scope.apply(
        db.query(Teacher).filter(Teacher.school_id == school_id),
        school=Teacher.school_id,
    )
    teachers = query.order_by(Teacher.name).all()
    return {
        "school": {"id": school.id, "name": school.name},
        "total_teachers": len(teachers),
        "teachers": [{"id": t.id, "name": t.name} for t in teachers],
    }
