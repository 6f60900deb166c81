"""
Enrollment (inscripción) capacity engine.

Seats are counted inside the same transaction as the insert, with the
session row locked; uq_enrollments_session_student is the backstop for
duplicate enrollments under concurrency.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from auth.permissions import Actor
from constants import (
    AttendanceStatus, SessionStatus, RECORDABLE_ATTENDANCE, RATING_MIN, RATING_MAX,
)
from database import atomic
from errors import CapacityFull, Conflict, InvalidInput, InvalidState, NotFound
from models import Enrollment, Student, Tutor, TutoringSession
from services.notifications import EnrollmentConfirmation
from services.tutoring_sessions import seats_taken
from utils.html_sanitizer import clean_text
from utils.time_utils import local_now

logger = logging.getLogger(__name__)

ALREADY_ENROLLED_MESSAGE = "El estudiante ya está inscrito en esta tutoría"


@dataclass
class EnrollmentResult:
    enrollment: Enrollment
    seats_available: int
    confirmation: Optional[EnrollmentConfirmation]


def _resolve_student(db: Session, actor: Actor, student_id: Optional[int]) -> Student:
    if actor.is_admin:
        if student_id is None:
            raise InvalidInput("Como admin debes enviar estudianteId")
        target_id = student_id
    else:
        target_id = actor.require_student("Solo estudiantes pueden inscribirse")

    student = (
        db.query(Student)
        .options(joinedload(Student.user))
        .filter(Student.id == target_id)
        .first()
    )
    if not student:
        raise NotFound("Estudiante no encontrado")
    return student


def _build_confirmation(
    student: Student,
    session: TutoringSession,
    seats_available: int,
) -> Optional[EnrollmentConfirmation]:
    user = student.user
    if not user or not user.email:
        return None
    tutor_user = session.tutor.user if session.tutor else None
    return EnrollmentConfirmation(
        to=user.email,
        student_name=user.name,
        subject=session.subject,
        topic=session.topic,
        description=session.description,
        starts_at=session.starts_at,
        duration_minutes=session.duration_minutes,
        modality=session.modality,
        location=session.location,
        meeting_link=session.meeting_link,
        tutor_name=tutor_user.name if tutor_user else None,
        seats_available=seats_available,
        max_seats=session.max_seats,
    )


def enroll(
    db: Session,
    actor: Actor,
    session_id: int,
    student_id: Optional[int] = None,
) -> EnrollmentResult:
    """
    Take a seat in a scheduled session.

    Raises:
        Forbidden: non-admin caller without a student profile
        NotFound: unknown session or student
        InvalidState: session is not `programada`
        CapacityFull: no seats left
        Conflict: the student is already enrolled

    The returned confirmation payload is meant to be sent after commit.
    """
    with atomic(db, ALREADY_ENROLLED_MESSAGE):
        student = _resolve_student(db, actor, student_id)

        session = (
            db.query(TutoringSession)
            .filter(TutoringSession.id == session_id)
            .with_for_update()
            .first()
        )
        if not session:
            raise NotFound("Tutoría no encontrada")

        if session.status != SessionStatus.SCHEDULED.value:
            raise InvalidState("La tutoría no está disponible para inscripciones")

        taken = seats_taken(db, session.id)
        if taken >= session.max_seats:
            raise CapacityFull("No hay cupos disponibles")

        existing = db.query(Enrollment.id).filter(
            Enrollment.session_id == session.id,
            Enrollment.student_id == student.id,
        ).first()
        if existing:
            raise Conflict(ALREADY_ENROLLED_MESSAGE)

        enrollment = Enrollment(
            session_id=session.id,
            student_id=student.id,
            attendance=AttendanceStatus.PENDING.value,
            enrolled_at=local_now(),
        )
        db.add(enrollment)
        db.flush()

    db.refresh(enrollment)
    seats_available = max(session.max_seats - (taken + 1), 0)
    logger.info(
        "Student %s enrolled in session %s by user %s (%s seats left)",
        student.id, session.id, actor.user_id, seats_available,
    )
    return EnrollmentResult(
        enrollment=enrollment,
        seats_available=seats_available,
        confirmation=_build_confirmation(student, session, seats_available),
    )


def _get_enrollment(db: Session, enrollment_id: int) -> Enrollment:
    enrollment = (
        db.query(Enrollment)
        .options(joinedload(Enrollment.session))
        .filter(Enrollment.id == enrollment_id)
        .first()
    )
    if not enrollment:
        raise NotFound("Inscripción no encontrada")
    return enrollment


def cancel_enrollment(db: Session, actor: Actor, enrollment_id: int) -> None:
    """Unenroll; only possible while the session is still `programada`."""
    with atomic(db):
        enrollment = _get_enrollment(db, enrollment_id)
        session = enrollment.session
        actor.require(
            tutor_id=session.tutor_id,
            student_id=enrollment.student_id,
            message="No tienes permiso sobre esta inscripción",
        )
        if session.status != SessionStatus.SCHEDULED.value:
            raise InvalidState("No se puede cancelar, la tutoría ya inició o finalizó")

        db.delete(enrollment)

    logger.info("Enrollment %s cancelled by user %s", enrollment_id, actor.user_id)


def record_attendance(db: Session, actor: Actor, enrollment_id: int, attendance: str) -> Enrollment:
    """Session tutor (or admin) marks asistio / falta / justificada."""
    if attendance not in RECORDABLE_ATTENDANCE:
        raise InvalidInput(f"Asistencia inválida. Valores: {', '.join(RECORDABLE_ATTENDANCE)}")

    with atomic(db):
        enrollment = _get_enrollment(db, enrollment_id)
        actor.require(
            tutor_id=enrollment.session.tutor_id,
            message="Solo el tutor de la tutoría puede registrar asistencia",
        )
        enrollment.attendance = attendance

    db.refresh(enrollment)
    logger.info("Attendance %s recorded on enrollment %s by user %s", attendance, enrollment.id, actor.user_id)
    return enrollment


def rate_enrollment(
    db: Session,
    actor: Actor,
    enrollment_id: int,
    rating: int,
    comment: Optional[str] = None,
) -> Enrollment:
    """Enrolled student (or admin) rates the session 1-5, optionally with a comment."""
    if isinstance(rating, bool) or not isinstance(rating, int) or not RATING_MIN <= rating <= RATING_MAX:
        raise InvalidInput(f"Calificación debe ser entre {RATING_MIN} y {RATING_MAX}")

    with atomic(db):
        enrollment = _get_enrollment(db, enrollment_id)
        actor.require(
            student_id=enrollment.student_id,
            message="Solo el estudiante inscrito puede calificar",
        )
        enrollment.rating = rating
        comment = clean_text(comment)
        if comment:
            enrollment.comment = comment

    db.refresh(enrollment)
    logger.info("Enrollment %s rated %s by user %s", enrollment.id, rating, actor.user_id)
    return enrollment


def list_enrollments_for_session(db: Session, actor: Actor, session_id: int) -> List[Enrollment]:
    """Roster of a session in enrollment order. Admin or the session's tutor."""
    session = db.query(TutoringSession).filter(TutoringSession.id == session_id).first()
    if not session:
        raise NotFound("Tutoría no encontrada")
    actor.require(tutor_id=session.tutor_id, message="Solo el tutor de la tutoría puede ver sus inscritos")

    return (
        db.query(Enrollment)
        .options(joinedload(Enrollment.student).joinedload(Student.user))
        .filter(Enrollment.session_id == session_id)
        .order_by(Enrollment.enrolled_at.asc(), Enrollment.id.asc())
        .all()
    )


def list_enrollments_for_student(db: Session, actor: Actor, student_id: int) -> List[Enrollment]:
    """A student's enrollments, most recent first. Admin or the student."""
    actor.require(student_id=student_id, message="Solo puedes ver tus propias inscripciones")

    return (
        db.query(Enrollment)
        .options(
            joinedload(Enrollment.session)
            .joinedload(TutoringSession.tutor)
            .joinedload(Tutor.user)
        )
        .filter(Enrollment.student_id == student_id)
        .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
        .all()
    )


def list_all_enrollments(db: Session) -> List[Enrollment]:
    """Every enrollment, most recent first (admin listing)."""
    return (
        db.query(Enrollment)
        .options(
            joinedload(Enrollment.student).joinedload(Student.user),
            joinedload(Enrollment.session).joinedload(TutoringSession.tutor).joinedload(Tutor.user),
        )
        .order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
        .all()
    )
