"""PDF export service using Playwright headless Chromium.

Reports are rendered to HTML first (render_report_html), then printed to
PDF by Chromium. The footer uses Playwright's built-in template overlay,
where `<span class="pageNumber">` is replaced with the page number.
"""
import json
import logging
from datetime import datetime
from typing import Optional

from app_config import settings
from constants import REPORT_KINDS
from errors import InvalidInput
from schemas import PeriodReport, StudentReport, TutorReport
from utils.formatting import format_rating
from utils.html_sanitizer import escape_html
from utils.time_utils import local_now

logger = logging.getLogger(__name__)

REPORT_CSS = """
body { font-family: 'Segoe UI', Tahoma, sans-serif; font-size: 11px; color: #222; }
h1 { font-size: 20px; margin: 0 0 4px 0; text-decoration: underline; }
.subtitle, .filters { color: #777; font-size: 10px; margin-bottom: 6px; }
.heading { font-size: 12px; margin: 10px 0; }
.cards { display: flex; gap: 10px; margin: 12px 0 16px 0; }
.card { flex: 1; border: 1px solid #999; border-radius: 8px; padding: 8px 10px; }
.card .label { color: #777; font-size: 10px; }
.card .value { font-size: 16px; margin-top: 4px; }
table { width: 100%; border-collapse: collapse; }
th { text-align: left; border-bottom: 1px solid #444; padding: 4px; }
td { border-bottom: 0.5px solid #ddd; padding: 4px; }
td.num, th.num { text-align: right; }
.empty { color: #777; font-style: italic; }
"""


def _fmt_dt(value: Optional[datetime]) -> str:
    return value.strftime("%d/%m/%Y %H:%M") if value else ""


def _cards_html(cards: list[tuple[str, object]]) -> str:
    items = "".join(
        f'<div class="card"><div class="label">{escape_html(label)}</div>'
        f'<div class="value">{escape_html(value)}</div></div>'
        for label, value in cards
    )
    return f'<div class="cards">{items}</div>'


def _table_html(columns: list[tuple[str, str, bool]], rows: list[dict]) -> str:
    """columns: (header, key, numeric)"""
    if not rows:
        return '<p class="empty">Sin registros</p>'
    head = "".join(
        f'<th class="num">{escape_html(h)}</th>' if numeric else f"<th>{escape_html(h)}</th>"
        for h, _, numeric in columns
    )
    body = []
    for row in rows:
        cells = "".join(
            f'<td class="num">{escape_html(row.get(key, ""))}</td>' if numeric
            else f'<td>{escape_html(row.get(key, ""))}</td>'
            for _, key, numeric in columns
        )
        body.append(f"<tr>{cells}</tr>")
    return f"<table><thead><tr>{head}</tr></thead><tbody>{''.join(body)}</tbody></table>"


def _student_section(data: StudentReport) -> str:
    summary = data.summary
    rows = [
        {
            "fecha": _fmt_dt(r.starts_at),
            "materia": r.subject or "",
            "tema": r.topic or "",
            "estado": r.session_status or "",
            "asistencia": r.attendance,
            "calif": r.rating if r.rating is not None else "",
        }
        for r in data.enrollments
    ]
    return (
        f'<div class="heading">Estudiante: {escape_html(data.student.name)}  |  {escape_html(data.student.email)}</div>'
        + _cards_html([
            ("Inscripciones", summary.total_enrollments),
            ("Asistió", summary.attendance.attended),
            ("Prom. calificación", format_rating(summary.average_rating)),
        ])
        + _table_html(
            [("Fecha", "fecha", False), ("Materia", "materia", False), ("Tema", "tema", False),
             ("Estado", "estado", False), ("Asistencia", "asistencia", False), ("Calif.", "calif", True)],
            rows,
        )
    )


def _tutor_section(data: TutorReport) -> str:
    summary = data.summary
    rows = [
        {
            "fecha": _fmt_dt(r.starts_at),
            "materia": r.subject,
            "tema": r.topic,
            "estado": r.status,
            "inscritos": r.enrolled_count,
            "prom": format_rating(r.average_rating) if r.average_rating is not None else "",
        }
        for r in data.sessions
    ]
    return (
        f'<div class="heading">Tutor: {escape_html(data.tutor.name)}  |  {escape_html(data.tutor.email)}</div>'
        + _cards_html([
            ("Tutorías", summary.total_sessions),
            ("Inscritos", summary.total_enrolled),
            ("Prom. calificación", format_rating(summary.average_rating)),
        ])
        + _table_html(
            [("Fecha", "fecha", False), ("Materia", "materia", False), ("Tema", "tema", False),
             ("Estado", "estado", False), ("Inscr.", "inscritos", True), ("Prom.", "prom", True)],
            rows,
        )
    )


def _period_section(data: PeriodReport) -> str:
    summary = data.summary
    rows = [
        {
            "fecha": _fmt_dt(r.starts_at),
            "tutor": r.tutor_name or "",
            "materia": r.subject,
            "tema": r.topic,
            "estado": r.status,
            "inscritos": r.enrolled_count,
        }
        for r in data.sessions
    ]
    return (
        f'<div class="heading">Rango: {data.range.start:%d/%m/%Y}  -  {data.range.end:%d/%m/%Y}</div>'
        + _cards_html([
            ("Tutorías", summary.total_sessions),
            ("Inscritos", summary.total_enrolled),
            ("Prom. calificación", format_rating(summary.average_rating)),
        ])
        + _table_html(
            [("Fecha", "fecha", False), ("Tutor", "tutor", False), ("Materia", "materia", False),
             ("Tema", "tema", False), ("Estado", "estado", False), ("Inscr.", "inscritos", True)],
            rows,
        )
    )


_SECTIONS = {
    "estudiante": (StudentReport, _student_section),
    "tutor": (TutorReport, _tutor_section),
    "semanal": (PeriodReport, _period_section),
}


def render_report_html(kind: str, data, filters: Optional[dict] = None) -> str:
    """Body HTML for a report: title, filters, summary cards and detail table."""
    if kind not in _SECTIONS:
        raise InvalidInput(f"Tipo de reporte inválido. Valores: {', '.join(REPORT_KINDS)}")
    expected, section = _SECTIONS[kind]
    if not isinstance(data, expected):
        raise TypeError(f"{kind} report expects {expected.__name__}, got {type(data).__name__}")

    generated = local_now().strftime("%d/%m/%Y %H:%M")
    parts = [
        f"<h1>Reporte - {escape_html(settings.APP_NAME)}</h1>",
        f'<div class="subtitle">Tipo: {escape_html(kind)} | Generado: {generated}</div>',
    ]
    shown = {k: v for k, v in (filters or {}).items() if v is not None}
    if shown:
        parts.append(
            f'<div class="filters">Filtros: {escape_html(json.dumps(shown, ensure_ascii=False, default=str))}</div>'
        )
    parts.append(section(data))
    return "\n".join(parts)


def report_filename(kind: str, report_id: Optional[int] = None) -> str:
    if kind == "semanal" or report_id is None:
        return f"reporte-{kind}.pdf"
    return f"reporte-{kind}-{report_id}.pdf"


def _footer_template(lr_margin_mm: float) -> str:
    return (
        f'<div style="font-size:9px;color:#888;display:flex;width:100%;'
        f'box-sizing:border-box;padding:0 {lr_margin_mm}mm;border-top:0.5px solid #ddd;padding-top:3px;">'
        f'<span style="flex:1;">{escape_html(settings.APP_NAME)}</span>'
        f'<span style="flex:1;display:flex;justify-content:flex-end;">'
        f'Página <span class="pageNumber"></span> / <span class="totalPages"></span></span></div>'
    )


async def generate_pdf(
    html_body: str,
    css: str = REPORT_CSS,
    margin_mm: float = 15,
) -> bytes:
    """Generate PDF using Playwright headless Chromium.

    Args:
        html_body: Report content HTML.
        css: Page CSS.
        margin_mm: Uniform page margin; the bottom margin leaves room for the footer.

    Returns:
        PDF file as bytes.
    """
    from playwright.async_api import async_playwright

    full_html = f"""<!DOCTYPE html>
<html><head>
<meta charset="utf-8">
<style>{css}</style>
</head><body>
{html_body}
</body></html>"""

    async with async_playwright() as pw:
        browser = await pw.chromium.launch()
        try:
            page = await browser.new_page()
            await page.set_content(full_html, wait_until="load")
            pdf_bytes = await page.pdf(
                format="A4",
                margin={
                    "top": f"{margin_mm}mm",
                    "right": f"{margin_mm}mm",
                    "bottom": f"{margin_mm + 5}mm",
                    "left": f"{margin_mm}mm",
                },
                print_background=True,
                display_header_footer=True,
                header_template="<span></span>",
                footer_template=_footer_template(margin_mm),
            )
        finally:
            await browser.close()

    logger.info("Rendered report PDF (%s bytes)", len(pdf_bytes))
    return pdf_bytes
