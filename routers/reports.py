"""
Reports (reportes) API endpoints: JSON summaries and PDF export.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from auth.dependencies import get_current_actor
from auth.permissions import Actor
from database import get_db
from errors import InvalidInput
from constants import REPORT_KINDS
from schemas import PeriodReport, StudentReport, TutorReport
from services import reports
from services.pdf_export import generate_pdf, render_report_html, report_filename

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/reportes/estudiante", response_model=StudentReport)
@router.get("/reportes/estudiante/{student_id}", response_model=StudentReport)
async def get_student_report(
    student_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Attendance and rating summary for a student.

    Students always receive their own report; admins must give the student id.
    """
    target = reports.resolve_student_report_id(actor, student_id)
    return reports.build_student_report(db, target)


@router.get("/reportes/tutor", response_model=TutorReport)
@router.get("/reportes/tutor/{tutor_id}", response_model=TutorReport)
async def get_tutor_report(
    tutor_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Sessions, enrollments and ratings summary for a tutor.

    Tutors always receive their own report; admins must give the tutor id.
    """
    target = reports.resolve_tutor_report_id(actor, tutor_id)
    return reports.build_tutor_report(db, target)


@router.get("/reportes/semanal", response_model=PeriodReport)
async def get_weekly_report(
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Sessions in a date range (admin). Defaults to the current Monday-Sunday week
    unless both **from** and **to** are given.
    """
    reports.require_period_report_access(actor)
    return reports.build_period_report(db, from_, to)


@router.get("/reportes/pdf")
async def export_report_pdf(
    tipo: Optional[str] = Query(None, description="estudiante | tutor | semanal"),
    id: Optional[int] = Query(None, description="Student or tutor id (admins)"),
    from_: Optional[datetime] = Query(None, alias="from"),
    to: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """
    Download a report as PDF. Same access rules as the JSON reports.
    """
    if not tipo:
        raise InvalidInput(f"Debes enviar tipo ({'|'.join(REPORT_KINDS)})")

    report_id = None
    if tipo == "estudiante":
        report_id = reports.resolve_student_report_id(actor, id)
        data = reports.build_student_report(db, report_id)
    elif tipo == "tutor":
        report_id = reports.resolve_tutor_report_id(actor, id)
        data = reports.build_tutor_report(db, report_id)
    elif tipo == "semanal":
        reports.require_period_report_access(actor)
        data = reports.build_period_report(db, from_, to)
    else:
        raise InvalidInput("Tipo de reporte inválido")

    filters = {"tipo": tipo, "id": id, "from": from_, "to": to}
    html_body = render_report_html(tipo, data, filters)
    pdf_bytes = await generate_pdf(html_body)
    filename = report_filename(tipo, report_id)

    logger.info("User %s exported %s", actor.user_id, filename)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
