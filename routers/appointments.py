"""
Appointments (agendamientos) API endpoints.
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from auth.dependencies import get_current_actor
from auth.permissions import Actor
from database import get_db
from schemas import AppointmentCreate, AppointmentResponse
from services import booking
from utils.response_builders import build_appointment_response

router = APIRouter()


@router.post("/agendamientos", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Book a tutor at an exact date and time.

    - **tutorId**, **fechaProgramada**, **materia**: required
    - **estudianteId**: required when the caller is an admin, ignored otherwise

    The time must be in the future and inside the tutor's weekly availability,
    and the tutor must not already have an active appointment at that time.
    """
    appointment = booking.create_appointment(
        db,
        actor,
        tutor_id=data.tutor_id,
        scheduled_at=data.scheduled_at,
        subject=data.subject,
        student_id=data.student_id,
    )
    return build_appointment_response(appointment)


@router.get("/agendamientos/upcoming", response_model=List[AppointmentResponse])
async def get_upcoming_appointments(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Upcoming non-cancelled appointments, soonest first.

    Students see their own, tutors theirs, admins all.
    """
    appointments = booking.list_upcoming_appointments(db, actor)
    return [build_appointment_response(a) for a in appointments]


@router.put("/agendamientos/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Cancel an appointment (owning student, assigned tutor or admin)."""
    appointment = booking.cancel_appointment(db, actor, appointment_id)
    return build_appointment_response(appointment)


@router.put("/agendamientos/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Confirm an appointment (owning student, assigned tutor or admin)."""
    appointment = booking.confirm_appointment(db, actor, appointment_id)
    return build_appointment_response(appointment)
