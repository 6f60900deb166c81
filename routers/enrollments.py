"""
Enrollments (inscripciones) API endpoints.
"""
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from auth.dependencies import get_current_actor, require_role
from auth.permissions import Actor
from constants import Role
from database import get_db
from schemas import (
    AttendanceUpdate,
    EnrollmentCreate,
    EnrollmentCreated,
    EnrollmentResponse,
    MessageResponse,
    RatingUpdate,
)
from services import enrollment as enrollment_service
from services.notifications import dispatch_enrollment_confirmation
from utils.response_builders import build_enrollment_response, build_session_responses

router = APIRouter()


@router.post("/inscripciones", response_model=EnrollmentCreated, status_code=status.HTTP_201_CREATED)
async def enroll(
    data: EnrollmentCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Enroll in a scheduled session.

    - **tutoriaId**: session to join
    - **estudianteId**: admins only, the student to enroll

    A confirmation email is sent after the response; mail failures do not
    affect the enrollment.
    """
    result = enrollment_service.enroll(db, actor, data.session_id, data.student_id)
    if result.confirmation is not None:
        background_tasks.add_task(dispatch_enrollment_confirmation, result.confirmation)

    return EnrollmentCreated(
        message="Inscripción exitosa",
        enrollment=build_enrollment_response(result.enrollment),
        seats_available=result.seats_available,
    )


@router.get("/inscripciones", response_model=List[EnrollmentResponse])
async def get_all_enrollments(
    actor: Actor = Depends(require_role([Role.ADMIN.value])),
    db: Session = Depends(get_db),
):
    """All enrollments, most recent first (admin)."""
    enrollments = enrollment_service.list_all_enrollments(db)
    sessions = {s.id: s for s in build_session_responses(db, {e.session for e in enrollments})}
    return [build_enrollment_response(e, sessions.get(e.session_id)) for e in enrollments]


@router.get("/inscripciones/tutoria/{session_id}", response_model=List[EnrollmentResponse])
async def get_session_enrollments(
    session_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Students enrolled in a session, in enrollment order (session tutor or admin)."""
    enrollments = enrollment_service.list_enrollments_for_session(db, actor, session_id)
    return [build_enrollment_response(e) for e in enrollments]


@router.get("/inscripciones/estudiante/{student_id}", response_model=List[EnrollmentResponse])
async def get_student_enrollments(
    student_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """A student's enrollments with session details, most recent first."""
    enrollments = enrollment_service.list_enrollments_for_student(db, actor, student_id)
    sessions = {s.id: s for s in build_session_responses(db, {e.session for e in enrollments})}
    return [build_enrollment_response(e, sessions.get(e.session_id)) for e in enrollments]


@router.put("/inscripciones/{enrollment_id}/asistencia", response_model=EnrollmentResponse)
async def record_attendance(
    enrollment_id: int,
    data: AttendanceUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Record attendance: asistio, falta or justificada."""
    enrollment = enrollment_service.record_attendance(db, actor, enrollment_id, data.attendance)
    return build_enrollment_response(enrollment)


@router.put("/inscripciones/{enrollment_id}/calificar", response_model=EnrollmentResponse)
async def rate_enrollment(
    enrollment_id: int,
    data: RatingUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Rate the session from 1 to 5 with an optional comment."""
    enrollment = enrollment_service.rate_enrollment(db, actor, enrollment_id, data.rating, data.comment)
    return build_enrollment_response(enrollment)


@router.delete("/inscripciones/{enrollment_id}", response_model=MessageResponse)
async def cancel_enrollment(
    enrollment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Unenroll while the session is still scheduled."""
    enrollment_service.cancel_enrollment(db, actor, enrollment_id)
    return MessageResponse(message="Inscripción cancelada")
