"""
Shared response builder functions.

Centralizes the common patterns for building API response objects
from SQLAlchemy models with loaded relationships.
"""
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from models import Appointment, Enrollment, TutoringSession
from schemas import AppointmentResponse, EnrollmentResponse, SessionResponse
from services.tutoring_sessions import enrollment_counts


def _user_name(profile) -> Optional[str]:
    user = profile.user if profile is not None else None
    return user.name if user else None


def build_appointment_response(appointment: Appointment) -> AppointmentResponse:
    data = AppointmentResponse.model_validate(appointment)
    data.tutor_name = _user_name(appointment.tutor)
    data.student_name = _user_name(appointment.student)
    return data


def build_session_response(session: TutoringSession, enrolled: int) -> SessionResponse:
    """
    Build a SessionResponse with seat accounting.

    Args:
        session: TutoringSession with its tutor relationship loadable
        enrolled: current enrollment count for the session
    """
    data = SessionResponse.model_validate(session)
    data.enrolled_count = enrolled
    data.seats_available = max(session.max_seats - enrolled, 0)
    data.tutor_name = _user_name(session.tutor)
    return data


def build_session_responses(db: Session, sessions: Iterable[TutoringSession]) -> List[SessionResponse]:
    """Same as build_session_response for many sessions, counting enrollments in one query."""
    sessions = list(sessions)
    counts: Dict[int, int] = enrollment_counts(db, (s.id for s in sessions))
    return [build_session_response(s, counts.get(s.id, 0)) for s in sessions]


def build_enrollment_response(
    enrollment: Enrollment,
    session_data: Optional[SessionResponse] = None,
) -> EnrollmentResponse:
    # Built field by field: model_validate would also pull in the raw `session` relationship
    data = EnrollmentResponse(
        id=enrollment.id,
        session_id=enrollment.session_id,
        student_id=enrollment.student_id,
        attendance=enrollment.attendance,
        rating=enrollment.rating,
        comment=enrollment.comment,
        enrolled_at=enrollment.enrolled_at,
    )
    data.student_name = _user_name(enrollment.student)
    data.session = session_data
    return data
