"""
SQLAlchemy models for the tutoring scheduling database.
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Text, ForeignKey, Boolean, JSON,
    Computed, UniqueConstraint, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from constants import AppointmentStatus, AttendanceStatus, SessionStatus, Modality


class User(Base):
    """
    Login identity.
    Holds credentials and the role tag; the tutor or student profile hangs off it.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(100), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships (at most one of these is set, matching the role)
    tutor_profile = relationship("Tutor", back_populates="user", uselist=False, cascade="all, delete-orphan")
    student_profile = relationship("Student", back_populates="user", uselist=False, cascade="all, delete-orphan")


class Tutor(Base):
    """
    Tutor profile.
    `availability` stores the weekly availability as
    {"lunes": ["08:00-10:00", ...], ...}; it is validated on write.
    """
    __tablename__ = "tutors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    specialty = Column(String(100), nullable=False)
    department = Column(String(100), nullable=False)
    availability = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="tutor_profile")
    appointments = relationship("Appointment", back_populates="tutor", cascade="all, delete-orphan")
    sessions = relationship("TutoringSession", back_populates="tutor", cascade="all, delete-orphan")


class Student(Base):
    """
    Student profile with enrollment metadata.
    """
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    student_number = Column(String(20), nullable=False, unique=True, comment='Matrícula')
    program = Column(String(100), nullable=False, comment='Carrera')
    term = Column(Integer, nullable=False, comment='Semestre 1-12')
    phone = Column(String(15))

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("term BETWEEN 1 AND 12", name="ck_students_term"),
    )

    # Relationships
    user = relationship("User", back_populates="student_profile")
    appointments = relationship("Appointment", back_populates="student", cascade="all, delete-orphan")
    enrollments = relationship("Enrollment", back_populates="student", cascade="all, delete-orphan")


class Appointment(Base):
    """
    1:1 booking (agendamiento) between a student and a tutor at an exact timestamp.
    `scheduled_at` is stored in local civil time.
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    tutor_id = Column(Integer, ForeignKey("tutors.id", ondelete="CASCADE"), nullable=False)

    scheduled_at = Column(DateTime, nullable=False, index=True)
    subject = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    notification_sent = Column(Boolean, nullable=False, default=False)

    # Generated column: tutor_id while the appointment occupies the slot, NULL once cancelled.
    # Together with uq_appointments_active_slot this lets the database reject a second
    # active booking for the same tutor and timestamp (NULLs never collide).
    active_slot_guard = Column(
        Integer,
        Computed(
            "CASE WHEN status IN ('pendiente', 'confirmada') THEN tutor_id ELSE NULL END"
        ),
    )

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("active_slot_guard", "scheduled_at", name="uq_appointments_active_slot"),
        Index("ix_appointments_tutor_slot", "tutor_id", "scheduled_at"),
    )

    # Relationships
    student = relationship("Student", back_populates="appointments")
    tutor = relationship("Tutor", back_populates="appointments")


class TutoringSession(Base):
    """
    Group tutoring session (tutoría) owned by one tutor, with a fixed seat count.
    """
    __tablename__ = "tutoring_sessions"

    id = Column(Integer, primary_key=True, index=True)
    tutor_id = Column(Integer, ForeignKey("tutors.id", ondelete="CASCADE"), nullable=False)

    # Content
    subject = Column(String(100), nullable=False)
    topic = Column(Text, nullable=False)
    description = Column(Text)

    # Schedule
    starts_at = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, comment='Duración en minutos')
    max_seats = Column(Integer, nullable=False)
    modality = Column(String(20), nullable=False, default=Modality.IN_PERSON.value)
    location = Column(String(255))
    meeting_link = Column(String(500))

    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_tutoring_sessions_duration"),
        CheckConstraint("max_seats > 0", name="ck_tutoring_sessions_max_seats"),
    )

    # Relationships
    tutor = relationship("Tutor", back_populates="sessions")
    enrollments = relationship(
        "Enrollment",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="Enrollment.enrolled_at",
    )


class Enrollment(Base):
    """
    A student's seat (inscripción) in a tutoring session, with attendance and rating.
    """
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("tutoring_sessions.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)

    attendance = Column(String(20), nullable=False, default=AttendanceStatus.PENDING.value)
    rating = Column(Integer, comment='Calificación de 1 a 5 estrellas, NULL = sin calificar')
    comment = Column(Text, comment='Comentario del estudiante sobre la tutoría')
    enrolled_at = Column(DateTime, nullable=False, default=func.now())

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_enrollments_session_student"),
        CheckConstraint("rating IS NULL OR rating BETWEEN 1 AND 5", name="ck_enrollments_rating"),
    )

    # Relationships
    session = relationship("TutoringSession", back_populates="enrollments")
    student = relationship("Student", back_populates="enrollments")
