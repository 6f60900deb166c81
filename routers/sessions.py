"""
Tutoring sessions (tutorías) API endpoints.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from auth.dependencies import get_current_actor
from auth.permissions import Actor
from constants import SessionStatus
from database import get_db
from schemas import MessageResponse, SessionCreate, SessionResponse, SessionUpdate
from services import tutoring_sessions
from utils.response_builders import build_session_response, build_session_responses

router = APIRouter()


@router.post("/tutorias", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: SessionCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Publish a group session. Tutors create their own; admins send **tutorId**.
    """
    session = tutoring_sessions.create_session(db, actor, data)
    return build_session_response(session, 0)


@router.get("/tutorias", response_model=List[SessionResponse])
async def get_sessions(
    tutor_id: Optional[int] = Query(None, alias="tutorId", description="Filter by tutor ID"),
    estado: Optional[SessionStatus] = Query(None, description="Filter by status"),
    materia: Optional[str] = Query(None, description="Subject contains"),
    desde: Optional[datetime] = Query(None, description="Start on or after"),
    hasta: Optional[datetime] = Query(None, description="Start on or before"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    List sessions, latest first.

    - **tutorId**: Filter by specific tutor
    - **estado**: programada, en_curso, completada, cancelada
    - **materia**: Substring of the subject
    - **desde** / **hasta**: Inclusive start-time bounds
    """
    sessions = tutoring_sessions.list_sessions(
        db,
        tutor_id=tutor_id,
        status=estado.value if estado else None,
        subject=materia,
        start=desde,
        end=hasta,
    )
    return build_session_responses(db, sessions)


@router.get("/tutorias/rango", response_model=List[SessionResponse])
async def get_sessions_in_range(
    desde: Optional[datetime] = Query(None),
    hasta: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Sessions starting between **desde** and **hasta** (both required, inclusive)."""
    sessions = tutoring_sessions.list_sessions_in_range(db, desde, hasta)
    return build_session_responses(db, sessions)


@router.get("/tutorias/tutor/{tutor_id}", response_model=List[SessionResponse])
async def get_sessions_by_tutor(
    tutor_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """All sessions of one tutor, latest first."""
    sessions = tutoring_sessions.list_sessions(db, tutor_id=tutor_id)
    return build_session_responses(db, sessions)


@router.get("/tutorias/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Session detail with seat accounting."""
    session = tutoring_sessions.get_session(db, session_id)
    return build_session_response(session, tutoring_sessions.seats_taken(db, session.id))


@router.put("/tutorias/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: int,
    changes: SessionUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Partial update.

    In-progress sessions accept only **descripcion** and **estado**; completed
    sessions only **descripcion**. **cupoMaximo** cannot drop below the
    current number of enrolled students.
    """
    session = tutoring_sessions.update_session(db, actor, session_id, changes)
    return build_session_response(session, tutoring_sessions.seats_taken(db, session.id))


@router.delete("/tutorias/{session_id}", response_model=MessageResponse)
async def delete_session(
    session_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Delete a session with no enrollments that has not started (otherwise cancel it)."""
    tutoring_sessions.delete_session(db, actor, session_id)
    return MessageResponse(message="Tutoría eliminada")
