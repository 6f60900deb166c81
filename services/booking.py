"""
1:1 appointment (agendamiento) booking.

One tutor holds at most one active (pending or confirmed) appointment per
exact timestamp. The check runs inside the same transaction as the insert
with the tutor row locked, and the uq_appointments_active_slot constraint
rejects whatever slips past it under concurrency.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from auth.permissions import Actor
from constants import AppointmentStatus, ACTIVE_APPOINTMENT_STATUSES
from database import atomic
from errors import Conflict, InvalidInput, InvalidState, NotFound
from models import Appointment, Student, Tutor
from services.availability import check_availability
from utils.html_sanitizer import clean_text
from utils.time_utils import local_now, to_local

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "El tutor ya tiene una cita en ese horario"


def _resolve_student(db: Session, actor: Actor, student_id: Optional[int]) -> Student:
    if actor.is_admin:
        if student_id is None:
            raise InvalidInput("Como admin debes enviar estudianteId")
        student = db.query(Student).filter(Student.id == student_id).first()
        if not student:
            raise NotFound("Estudiante no encontrado")
        return student

    own_id = actor.require_student("Solo estudiantes pueden agendar")
    student = db.query(Student).filter(Student.id == own_id).first()
    if not student:
        raise NotFound("Perfil de estudiante no encontrado")
    return student


def create_appointment(
    db: Session,
    actor: Actor,
    tutor_id: Optional[int],
    scheduled_at: Optional[datetime],
    subject: Optional[str],
    student_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Appointment:
    """
    Book a tutor for an exact timestamp.

    Raises:
        InvalidInput: missing fields, past timestamp, or outside the tutor's availability
        Forbidden: a non-admin caller without a student profile
        NotFound: unknown tutor or student
        Conflict: the tutor already has an active appointment at that timestamp
    """
    subject = clean_text(subject)
    missing = [
        name for name, value in (
            ("tutorId", tutor_id),
            ("fechaProgramada", scheduled_at),
            ("materia", subject),
        )
        if not value
    ]
    if missing:
        raise InvalidInput(f"Faltan campos: {', '.join(missing)}")

    # Slots are compared by exact value; sub-second precision never survives storage
    requested = to_local(scheduled_at).replace(microsecond=0)
    current = to_local(now) if now is not None else local_now()
    if requested <= current:
        raise InvalidInput("No puedes agendar en el pasado")

    with atomic(db, SLOT_TAKEN_MESSAGE):
        student = _resolve_student(db, actor, student_id)

        tutor = db.query(Tutor).filter(Tutor.id == tutor_id).with_for_update().first()
        if not tutor:
            raise NotFound("Tutor no encontrado")

        check_availability(tutor.availability, requested)

        taken = db.query(Appointment.id).filter(
            Appointment.tutor_id == tutor.id,
            Appointment.scheduled_at == requested,
            Appointment.status.in_(ACTIVE_APPOINTMENT_STATUSES),
        ).first()
        if taken:
            raise Conflict(SLOT_TAKEN_MESSAGE)

        appointment = Appointment(
            student_id=student.id,
            tutor_id=tutor.id,
            scheduled_at=requested,
            subject=subject,
            status=AppointmentStatus.PENDING.value,
        )
        db.add(appointment)
        db.flush()

    db.refresh(appointment)
    logger.info(
        "Appointment %s booked: tutor=%s student=%s at %s by user %s",
        appointment.id, tutor.id, student.id, requested, actor.user_id,
    )
    return appointment


def _get_for_transition(db: Session, actor: Actor, appointment_id: int) -> Appointment:
    appointment = (
        db.query(Appointment)
        .filter(Appointment.id == appointment_id)
        .with_for_update()
        .first()
    )
    if not appointment:
        raise NotFound("Agendamiento no encontrado")
    actor.require(
        tutor_id=appointment.tutor_id,
        student_id=appointment.student_id,
        message="No tienes permiso sobre este agendamiento",
    )
    return appointment


def cancel_appointment(db: Session, actor: Actor, appointment_id: int) -> Appointment:
    """Cancel a pending or confirmed appointment, freeing its slot."""
    with atomic(db):
        appointment = _get_for_transition(db, actor, appointment_id)
        if appointment.status == AppointmentStatus.CANCELLED.value:
            raise InvalidState("El agendamiento ya está cancelado")
        appointment.status = AppointmentStatus.CANCELLED.value

    db.refresh(appointment)
    logger.info("Appointment %s cancelled by user %s", appointment.id, actor.user_id)
    return appointment


def confirm_appointment(db: Session, actor: Actor, appointment_id: int) -> Appointment:
    """Confirm an appointment. Confirming twice is allowed; confirming a cancelled one is not."""
    with atomic(db):
        appointment = _get_for_transition(db, actor, appointment_id)
        if appointment.status == AppointmentStatus.CANCELLED.value:
            raise InvalidState("No puedes confirmar un agendamiento cancelado")
        appointment.status = AppointmentStatus.CONFIRMED.value

    db.refresh(appointment)
    logger.info("Appointment %s confirmed by user %s", appointment.id, actor.user_id)
    return appointment


def list_upcoming_appointments(
    db: Session,
    actor: Actor,
    now: Optional[datetime] = None,
) -> List[Appointment]:
    """Non-cancelled appointments from now on, soonest first, scoped to the caller."""
    current = to_local(now) if now is not None else local_now()

    query = (
        db.query(Appointment)
        .options(
            joinedload(Appointment.tutor).joinedload(Tutor.user),
            joinedload(Appointment.student).joinedload(Student.user),
        )
        .filter(
            Appointment.status != AppointmentStatus.CANCELLED.value,
            Appointment.scheduled_at >= current,
        )
    )

    if not actor.is_admin:
        if actor.tutor_id is not None:
            query = query.filter(Appointment.tutor_id == actor.tutor_id)
        elif actor.student_id is not None:
            query = query.filter(Appointment.student_id == actor.student_id)
        else:
            return []

    return query.order_by(Appointment.scheduled_at.asc()).all()
