"""
Attendance and rating reports.

Read-only aggregation over enrollments and sessions. The helpers at the top
are pure so they can be tested without a database.
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session, joinedload

from auth.permissions import Actor
from constants import Role, AttendanceStatus, TOP_RANKING_LIMIT
from errors import Forbidden, InvalidInput, NotFound
from models import Enrollment, Student, Tutor, TutoringSession
from schemas import (
    AttendanceSummary,
    CountEntry,
    DateRange,
    PeriodReport,
    PersonBasic,
    SessionReportRow,
    SessionsSummary,
    StudentReport,
    StudentReportRow,
    StudentReportSummary,
    TutorReport,
)
from utils.time_utils import local_now, to_local, week_range

logger = logging.getLogger(__name__)


# ============================================
# Pure aggregation helpers
# ============================================

def average(values: Iterable[Optional[float]]) -> Optional[float]:
    """Mean of the non-null values; None (not 0) when there are none."""
    numbers = [v for v in values if v is not None]
    if not numbers:
        return None
    return sum(numbers) / len(numbers)


def group_count(items: Iterable, key: Callable = lambda item: item) -> List[CountEntry]:
    """Count items per key, in first-encountered key order."""
    counts: dict = {}
    for item in items:
        k = key(item)
        counts[k] = counts.get(k, 0) + 1
    return [CountEntry(key=str(k), count=c) for k, c in counts.items()]


def rank_top(entries: Sequence[CountEntry], limit: int = TOP_RANKING_LIMIT) -> List[CountEntry]:
    """Highest counts first; sorted() is stable so ties keep their original order."""
    return sorted(entries, key=lambda e: e.count, reverse=True)[:limit]


def _person(profile_id: int, user) -> PersonBasic:
    return PersonBasic(
        id=profile_id,
        name=user.name if user else None,
        email=user.email if user else None,
    )


def _summarize_sessions(sessions: Sequence[TutoringSession]) -> tuple[SessionsSummary, List[SessionReportRow]]:
    """Shared summary for tutor and period reports. Sessions must have enrollments loaded."""
    rows = []
    all_ratings = []
    total_enrolled = 0

    for session in sessions:
        ratings = [e.rating for e in session.enrollments if e.rating is not None]
        all_ratings.extend(ratings)
        total_enrolled += len(session.enrollments)
        tutor_user = session.tutor.user if session.tutor else None
        rows.append(SessionReportRow(
            id=session.id,
            starts_at=session.starts_at,
            subject=session.subject,
            topic=session.topic,
            status=session.status,
            tutor_id=session.tutor_id,
            tutor_name=tutor_user.name if tutor_user else None,
            enrolled_count=len(session.enrollments),
            average_rating=average(ratings),
        ))

    summary = SessionsSummary(
        total_sessions=len(sessions),
        total_enrolled=total_enrolled,
        average_rating=average(all_ratings),
        by_status=group_count(sessions, lambda s: s.status),
        top_subjects=rank_top(group_count(s.subject for s in sessions if s.subject)),
    )
    return summary, rows


def _sessions_query(db: Session):
    return db.query(TutoringSession).options(
        joinedload(TutoringSession.enrollments),
        joinedload(TutoringSession.tutor).joinedload(Tutor.user),
    )


# ============================================
# Report builders
# ============================================

def build_student_report(db: Session, student_id: int) -> StudentReport:
    """Attendance buckets, mean rating and top subjects for one student."""
    student = (
        db.query(Student)
        .options(joinedload(Student.user))
        .filter(Student.id == student_id)
        .first()
    )
    if not student:
        raise NotFound("Estudiante no encontrado")

    enrollments = (
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

    buckets = {status.value: 0 for status in AttendanceStatus}
    for enrollment in enrollments:
        if enrollment.attendance in buckets:
            buckets[enrollment.attendance] += 1

    rows = []
    for enrollment in enrollments:
        session = enrollment.session
        tutor_user = session.tutor.user if session and session.tutor else None
        rows.append(StudentReportRow(
            enrollment_id=enrollment.id,
            enrolled_at=enrollment.enrolled_at,
            session_id=enrollment.session_id,
            starts_at=session.starts_at if session else None,
            subject=session.subject if session else None,
            topic=session.topic if session else None,
            session_status=session.status if session else None,
            tutor_name=tutor_user.name if tutor_user else None,
            attendance=enrollment.attendance,
            rating=enrollment.rating,
        ))

    subjects = [e.session.subject for e in enrollments if e.session and e.session.subject]

    return StudentReport(
        student=_person(student.id, student.user),
        summary=StudentReportSummary(
            total_enrollments=len(enrollments),
            attendance=AttendanceSummary(
                attended=buckets[AttendanceStatus.ATTENDED.value],
                absent=buckets[AttendanceStatus.ABSENT.value],
                excused=buckets[AttendanceStatus.EXCUSED.value],
                pending=buckets[AttendanceStatus.PENDING.value],
            ),
            average_rating=average(e.rating for e in enrollments),
            top_subjects=rank_top(group_count(subjects)),
        ),
        enrollments=rows,
    )


def build_tutor_report(db: Session, tutor_id: int) -> TutorReport:
    """Sessions by status, total enrolled, ratings and top subjects for one tutor."""
    tutor = (
        db.query(Tutor)
        .options(joinedload(Tutor.user))
        .filter(Tutor.id == tutor_id)
        .first()
    )
    if not tutor:
        raise NotFound("Tutor no encontrado")

    sessions = (
        _sessions_query(db)
        .filter(TutoringSession.tutor_id == tutor_id)
        .order_by(TutoringSession.starts_at.desc(), TutoringSession.id.desc())
        .all()
    )
    summary, rows = _summarize_sessions(sessions)
    return TutorReport(tutor=_person(tutor.id, tutor.user), summary=summary, sessions=rows)


def build_period_report(
    db: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    reference: Optional[datetime] = None,
) -> PeriodReport:
    """
    Sessions starting in [start, end] (inclusive) plus a top-tutors ranking.

    Without an explicit range, covers the Monday-Sunday week containing
    `reference` (default: now).
    """
    if start is None or end is None:
        start, end = week_range(to_local(reference) if reference else local_now())
    else:
        start, end = to_local(start), to_local(end)
        if start > end:
            raise InvalidInput("from/to inválidos")

    sessions = (
        _sessions_query(db)
        .filter(TutoringSession.starts_at >= start, TutoringSession.starts_at <= end)
        .order_by(TutoringSession.starts_at.desc(), TutoringSession.id.desc())
        .all()
    )
    summary, rows = _summarize_sessions(sessions)

    tutor_names = {row.tutor_id: row.tutor_name for row in rows}
    top_tutors = rank_top(group_count(s.tutor_id for s in sessions))
    for entry in top_tutors:
        entry.label = tutor_names.get(int(entry.key))
    summary.top_tutors = top_tutors

    logger.debug("Period report %s - %s: %s sessions", start, end, len(sessions))
    return PeriodReport(range=DateRange(start=start, end=end), summary=summary, sessions=rows)


# ============================================
# Report access
# ============================================

def resolve_student_report_id(actor: Actor, student_id: Optional[int]) -> int:
    """Students always get their own report; admins must name the student."""
    if actor.role == Role.STUDENT.value:
        return actor.require_student("Solo estudiantes")
    if actor.is_admin:
        if student_id is None:
            raise InvalidInput("Debes enviar estudianteId")
        return student_id
    raise Forbidden()


def resolve_tutor_report_id(actor: Actor, tutor_id: Optional[int]) -> int:
    """Tutors always get their own report; admins must name the tutor."""
    if actor.role == Role.TUTOR.value:
        return actor.require_tutor("Solo tutores")
    if actor.is_admin:
        if tutor_id is None:
            raise InvalidInput("Debes enviar tutorId")
        return tutor_id
    raise Forbidden()


def require_period_report_access(actor: Actor) -> None:
    if not actor.is_admin:
        raise Forbidden()
