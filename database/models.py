"""
Database models for the Academic Records system.
Defines the SQLAlchemy models the authorization and reporting core reads.
"""
from enum import Enum as PyEnum
from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, Float, ForeignKey, Integer,
    LargeBinary, String, UniqueConstraint
)
from sqlalchemy.orm import relationship, declarative_base, deferred
from sqlalchemy.sql import func

Base = declarative_base()


class UserRole(str, PyEnum):
    """User roles enum."""
    ADMIN = "ADMIN"
    COORDINATOR = "COORDINATOR"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class User(Base):
    """
    Users table - authenticated principals.
    
    Exactly one of teacher_id / coordinator_id / student_id is set,
    except for admins, which have none.
    """
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(
        Enum("ADMIN", "COORDINATOR", "TEACHER", "STUDENT", name="user_role"),
        nullable=False
    )
    active = Column(Boolean, nullable=False, default=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    coordinator_id = Column(Integer, ForeignKey("coordinators.id", ondelete="SET NULL"), nullable=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="SET NULL"), nullable=True)
    
    teacher = relationship("Teacher")
    coordinator = relationship("Coordinator")
    student = relationship("Student")
    
    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class School(Base):
    """Schools table."""
    __tablename__ = "schools"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    
    classes = relationship("SchoolClass", back_populates="school")
    teachers = relationship("Teacher", back_populates="school")
    coordinators = relationship("Coordinator", back_populates="school")
    approval_rules = relationship("ApprovalRule", back_populates="school")
    
    def __repr__(self):
        return f"<School(id={self.id}, name='{self.name}')>"


class Coordinator(Base):
    """Coordinators table. A null school_id marks an orphaned record."""
    __tablename__ = "coordinators"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="SET NULL"), nullable=True)
    
    school = relationship("School", back_populates="coordinators")
    
    def __repr__(self):
        return f"<Coordinator(id={self.id}, school_id={self.school_id})>"


class Teacher(Base):
    """Teachers table. A null school_id marks an orphaned record."""
    __tablename__ = "teachers"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="SET NULL"), nullable=True)
    
    school = relationship("School", back_populates="teachers")
    assignments = relationship("TeachingAssignment", back_populates="teacher")
    
    def __repr__(self):
        return f"<Teacher(id={self.id}, school_id={self.school_id})>"


class Discipline(Base):
    """Disciplines (subjects) table."""
    __tablename__ = "disciplines"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    
    def __repr__(self):
        return f"<Discipline(id={self.id}, name='{self.name}')>"


class SchoolClass(Base):
    """
    Classes table.
    
    Attributes:
        school_id: Owning school; null when the school was removed
        grade_level: Grade or series label (e.g. "9th grade")
        academic_year: Year the class runs in, used to pick the approval rule
        shift: Morning / afternoon / evening
    """
    __tablename__ = "classes"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    grade_level = Column(String(100), nullable=True)
    academic_year = Column(Integer, nullable=False)
    shift = Column(String(50), nullable=True)
    
    school = relationship("School", back_populates="classes")
    students = relationship("Student", back_populates="school_class")
    assignments = relationship("TeachingAssignment", back_populates="school_class")
    
    def __repr__(self):
        return f"<SchoolClass(id={self.id}, name='{self.name}', year={self.academic_year})>"


class Student(Base):
    """Students table. class_id is the current enrollment."""
    __tablename__ = "students"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    registration = Column(String(50), nullable=False, unique=True)
    birth_date = Column(Date, nullable=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    
    school_class = relationship("SchoolClass", back_populates="students")
    grades = relationship("Grade", back_populates="student")
    
    def __repr__(self):
        return f"<Student(id={self.id}, class_id={self.class_id})>"


class TeachingAssignment(Base):
    """
    Link between one teacher, one class and one discipline.
    Establishes who may grade that class in that subject.
    """
    __tablename__ = "teaching_assignments"
    __table_args__ = (
        UniqueConstraint("class_id", "teacher_id", "discipline_id", name="uq_assignment"),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False)
    discipline_id = Column(Integer, ForeignKey("disciplines.id", ondelete="CASCADE"), nullable=False)
    
    school_class = relationship("SchoolClass", back_populates="assignments")
    teacher = relationship("Teacher", back_populates="assignments")
    discipline = relationship("Discipline")
    assessments = relationship("Assessment", back_populates="assignment", cascade="all, delete-orphan")
    
    def to_dict(self):
        return {
            "id": self.id,
            "class_id": self.class_id,
            "class_name": self.school_class.name if self.school_class else None,
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher.name if self.teacher else None,
            "discipline_id": self.discipline_id,
            "discipline": self.discipline.name if self.discipline else None,
        }
    
    def __repr__(self):
        return (
            f"<TeachingAssignment(id={self.id}, class_id={self.class_id}, "
            f"teacher_id={self.teacher_id}, discipline_id={self.discipline_id})>"
        )


class Term(Base):
    """Academic terms (bimesters, semesters) within an academic year."""
    __tablename__ = "terms"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=True)
    academic_year = Column(Integer, nullable=False)
    name = Column(String(100), nullable=False)
    starts_on = Column(Date, nullable=False)
    ends_on = Column(Date, nullable=False)
    
    def __repr__(self):
        return f"<Term(id={self.id}, name='{self.name}', starts_on={self.starts_on})>"


class Assessment(Base):
    """
    Graded assessments.
    
    weight is a positive multiplier used in averaging; weights within a
    term do not need to sum to any total. The optional exam file is an
    opaque blob and is only loaded when requested.
    """
    __tablename__ = "assessments"
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    assignment_id = Column(Integer, ForeignKey("teaching_assignments.id", ondelete="CASCADE"), nullable=False)
    term_id = Column(Integer, ForeignKey("terms.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    kind = Column(String(50), nullable=True)
    weight = Column(Float, nullable=False)
    applied_on = Column(Date, nullable=False)
    file_data = deferred(Column(LargeBinary, nullable=True))
    file_name = Column(String(255), nullable=True)
    
    assignment = relationship("TeachingAssignment", back_populates="assessments")
    term = relationship("Term")
    grades = relationship("Grade", back_populates="assessment", cascade="all, delete-orphan")
    
    def __repr__(self):
        return f"<Assessment(id={self.id}, title='{self.title}', weight={self.weight})>"
    
    def to_dict(self):
        """Convert assessment to dictionary, without the file contents."""
        return {
            "id": self.id,
            "assignment_id": self.assignment_id,
            "class_id": self.assignment.class_id if self.assignment else None,
            "discipline": self.assignment.discipline.name if self.assignment else None,
            "term_id": self.term_id,
            "title": self.title,
            "kind": self.kind,
            "weight": self.weight,
            "applied_on": self.applied_on.isoformat() if self.applied_on else None,
            "has_file": self.file_name is not None,
        }


class Grade(Base):
    """
    Grades table. At most one grade per (assessment, student).
    """
    __tablename__ = "grades"
    __table_args__ = (
        UniqueConstraint("assessment_id", "student_id", name="uq_grade_assessment_student"),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    value = Column(Float, nullable=False)
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())
    
    assessment = relationship("Assessment", back_populates="grades")
    student = relationship("Student", back_populates="grades")
    
    def __repr__(self):
        return f"<Grade(id={self.id}, assessment_id={self.assessment_id}, student_id={self.student_id}, value={self.value})>"
    
    def to_dict(self):
        """Convert grade to dictionary for API responses."""
        return {
            "id": self.id,
            "assessment_id": self.assessment_id,
            "assessment_title": self.assessment.title if self.assessment else None,
            "student_id": self.student_id,
            "student_name": self.student.name if self.student else None,
            "value": self.value,
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ApprovalRule(Base):
    """
    Pass/fail threshold for one school and academic year.
    """
    __tablename__ = "approval_rules"
    __table_args__ = (
        UniqueConstraint("school_id", "academic_year", name="uq_rule_school_year"),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    coordinator_id = Column(Integer, ForeignKey("coordinators.id", ondelete="SET NULL"), nullable=True)
    academic_year = Column(Integer, nullable=False)
    minimum_average = Column(Float, nullable=False)
    
    school = relationship("School", back_populates="approval_rules")
    
    def __repr__(self):
        return f"<ApprovalRule(school_id={self.school_id}, year={self.academic_year}, minimum={self.minimum_average})>"
    
    def to_dict(self):
        return {
            "id": self.id,
            "school_id": self.school_id,
            "coordinator_id": self.coordinator_id,
            "academic_year": self.academic_year,
            "minimum_average": self.minimum_average,
        }
