"""
Group tutoring sessions (tutorías): creation, listing and state-gated mutation.

Once a session leaves `programada` its editable surface shrinks: an
in-progress session accepts only description and status, a completed one
only description. Status moves forward only (see SESSION_STATUS_TRANSITIONS).
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from auth.permissions import Actor
from constants import (
    SessionStatus,
    SESSION_STATUS_TRANSITIONS,
    SESSION_MUTABLE_FIELDS,
    UNDELETABLE_SESSION_STATUSES,
)
from database import atomic
from errors import InvalidInput, InvalidState, NotFound
from models import Enrollment, Tutor, TutoringSession
from schemas import SessionCreate, SessionUpdate
from utils.html_sanitizer import clean_text
from utils.time_utils import to_local

logger = logging.getLogger(__name__)

# Columns that may be cleared with an explicit null
_NULLABLE_FIELDS = {"description", "location", "meeting_link"}
_TEXT_FIELDS = {"subject", "topic", "description", "location"}


def _wire_name(field: str) -> str:
    info = SessionUpdate.model_fields.get(field)
    return (info.alias if info and info.alias else field)


def seats_taken(db: Session, session_id: int) -> int:
    """Current enrollment count, read inside the caller's transaction."""
    return db.query(func.count(Enrollment.id)).filter(Enrollment.session_id == session_id).scalar() or 0


def enrollment_counts(db: Session, session_ids: Iterable[int]) -> Dict[int, int]:
    """Enrollment count per session id in one grouped query."""
    ids = list(session_ids)
    if not ids:
        return {}
    rows = (
        db.query(Enrollment.session_id, func.count(Enrollment.id))
        .filter(Enrollment.session_id.in_(ids))
        .group_by(Enrollment.session_id)
        .all()
    )
    return {session_id: count for session_id, count in rows}


def available_seats(db: Session, session: TutoringSession) -> int:
    """max_seats minus current enrollments, never negative."""
    return max(session.max_seats - seats_taken(db, session.id), 0)


def create_session(db: Session, actor: Actor, data: SessionCreate) -> TutoringSession:
    """Tutors create sessions for themselves; admins must name the tutor."""
    if actor.is_admin:
        if data.tutor_id is None:
            raise InvalidInput("Como admin debes enviar tutorId")
        tutor_id = data.tutor_id
    else:
        tutor_id = actor.require_tutor("Solo tutores pueden crear tutorías")

    with atomic(db):
        tutor = db.query(Tutor).filter(Tutor.id == tutor_id).first()
        if not tutor:
            raise NotFound("Tutor no encontrado")

        session = TutoringSession(
            tutor_id=tutor.id,
            subject=clean_text(data.subject),
            topic=clean_text(data.topic),
            description=clean_text(data.description),
            starts_at=to_local(data.starts_at).replace(microsecond=0),
            duration_minutes=data.duration_minutes,
            max_seats=data.max_seats,
            modality=data.modality,
            location=clean_text(data.location),
            meeting_link=data.meeting_link,
            status=SessionStatus.SCHEDULED.value,
        )
        db.add(session)
        db.flush()

    db.refresh(session)
    logger.info("Session %s created for tutor %s by user %s", session.id, tutor.id, actor.user_id)
    return session


def get_session(db: Session, session_id: int) -> TutoringSession:
    session = (
        db.query(TutoringSession)
        .options(joinedload(TutoringSession.tutor).joinedload(Tutor.user))
        .filter(TutoringSession.id == session_id)
        .first()
    )
    if not session:
        raise NotFound("Tutoría no encontrada")
    return session


def list_sessions(
    db: Session,
    tutor_id: Optional[int] = None,
    status: Optional[str] = None,
    subject: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[TutoringSession]:
    """Sessions matching the filters, latest start first. `subject` is a substring match."""
    query = db.query(TutoringSession).options(
        joinedload(TutoringSession.tutor).joinedload(Tutor.user)
    )

    if tutor_id:
        query = query.filter(TutoringSession.tutor_id == tutor_id)
    if status:
        query = query.filter(TutoringSession.status == status)
    if subject:
        query = query.filter(TutoringSession.subject.like(f"%{subject}%"))
    if start:
        query = query.filter(TutoringSession.starts_at >= to_local(start))
    if end:
        query = query.filter(TutoringSession.starts_at <= to_local(end))

    return query.order_by(TutoringSession.starts_at.desc(), TutoringSession.id.desc()).all()


def list_sessions_in_range(db: Session, start: datetime, end: datetime) -> List[TutoringSession]:
    """Sessions starting within [start, end], both ends inclusive."""
    if start is None or end is None:
        raise InvalidInput("Debe enviar desde y hasta")
    if to_local(start) > to_local(end):
        raise InvalidInput("Rango de fechas inválido")
    return list_sessions(db, start=start, end=end)


def update_session(
    db: Session,
    actor: Actor,
    session_id: int,
    changes: SessionUpdate,
) -> TutoringSession:
    """
    Apply a partial update.

    Raises:
        NotFound: unknown session
        Forbidden: a tutor editing someone else's session
        InvalidInput: fields not editable in the current status (named in the
            message), null for a required field, or max seats below current enrollments
        InvalidState: a status change that is not a forward transition
    """
    fields = changes.model_dump(exclude_unset=True)

    with atomic(db):
        session = (
            db.query(TutoringSession)
            .filter(TutoringSession.id == session_id)
            .with_for_update()
            .first()
        )
        if not session:
            raise NotFound("Tutoría no encontrada")
        actor.require(tutor_id=session.tutor_id, message="Solo puedes modificar tus propias tutorías")

        allowed = SESSION_MUTABLE_FIELDS.get(session.status)
        if allowed is not None:
            rejected = [_wire_name(name) for name in fields if name not in allowed]
            if rejected:
                raise InvalidInput(
                    f"La tutoría está {session.status}; no se pueden modificar: {', '.join(rejected)}"
                )

        nulled = [_wire_name(name) for name, value in fields.items()
                  if value is None and name not in _NULLABLE_FIELDS]
        if nulled:
            raise InvalidInput(f"Campos requeridos no pueden ser nulos: {', '.join(nulled)}")

        new_status = fields.pop("status", None)
        if new_status is not None and new_status != session.status:
            if new_status not in SESSION_STATUS_TRANSITIONS.get(session.status, set()):
                raise InvalidState(f"No se puede cambiar el estado de {session.status} a {new_status}")

        if "max_seats" in fields:
            taken = seats_taken(db, session.id)
            if fields["max_seats"] < taken:
                raise InvalidInput(
                    f"cupoMaximo no puede ser menor que los inscritos actuales ({taken})"
                )

        for name, value in fields.items():
            if name in _TEXT_FIELDS:
                value = clean_text(value)
            elif name == "starts_at":
                value = to_local(value).replace(microsecond=0)
            setattr(session, name, value)

        if new_status is not None:
            session.status = new_status

    db.refresh(session)
    logger.info(
        "Session %s updated by user %s: %s",
        session.id, actor.user_id, ", ".join(sorted(changes.model_fields_set)),
    )
    return session


def delete_session(db: Session, actor: Actor, session_id: int) -> None:
    """Hard-delete a session that never started and has nobody enrolled."""
    with atomic(db):
        session = (
            db.query(TutoringSession)
            .filter(TutoringSession.id == session_id)
            .with_for_update()
            .first()
        )
        if not session:
            raise NotFound("Tutoría no encontrada")
        actor.require(tutor_id=session.tutor_id, message="Solo puedes eliminar tus propias tutorías")

        if session.status in UNDELETABLE_SESSION_STATUSES:
            raise InvalidState(
                f"No se puede eliminar una tutoría {session.status}; debe cancelarse"
            )

        taken = seats_taken(db, session.id)
        if taken:
            raise InvalidState(f"No se puede eliminar: la tutoría tiene {taken} inscripciones")

        db.delete(session)

    logger.info("Session %s deleted by user %s", session_id, actor.user_id)
