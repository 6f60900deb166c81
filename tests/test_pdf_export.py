"""
Tests for report HTML rendering and the PDF export endpoint.

Chromium is never launched here: generate_pdf is patched at the router.
"""
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch

from conftest import auth_headers
from errors import InvalidInput
from schemas import (
    AttendanceSummary,
    DateRange,
    PeriodReport,
    PersonBasic,
    SessionsSummary,
    StudentReport,
    StudentReportRow,
    StudentReportSummary,
)
from services.pdf_export import render_report_html, report_filename

FAKE_PDF = b"%PDF-1.4 fake"


def student_report(name="Luis Estudiante", topic="Derivadas") -> StudentReport:
    return StudentReport(
        student=PersonBasic(id=1, name=name, email="luis@example.edu"),
        summary=StudentReportSummary(
            total_enrollments=1,
            attendance=AttendanceSummary(attended=1),
            average_rating=4.5,
            top_subjects=[],
        ),
        enrollments=[StudentReportRow(
            enrollment_id=10,
            enrolled_at=datetime(2025, 6, 1, 8, 0),
            session_id=3,
            starts_at=datetime(2025, 6, 2, 9, 0),
            subject="Cálculo",
            topic=topic,
            session_status="completada",
            tutor_name="Ana Tutora",
            attendance="asistio",
            rating=5,
        )],
    )


class TestRenderReportHtml:

    def test_student_report_content(self):
        html = render_report_html("estudiante", student_report(), {"tipo": "estudiante", "id": 1})

        assert "Reporte - Gestión de Tutorías" in html
        assert "Tipo: estudiante" in html
        assert "Luis Estudiante" in html
        assert "4.50" in html
        assert "02/06/2025 09:00" in html
        assert "Filtros:" in html

    def test_user_text_is_escaped(self):
        html = render_report_html("estudiante", student_report(name="<script>alert(1)</script>", topic="a & b"))
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "a &amp; b" in html

    def test_null_filters_are_hidden(self):
        html = render_report_html("estudiante", student_report(), {"tipo": "estudiante", "from": None})
        assert '"from"' not in html

    def test_empty_period_report(self):
        report = PeriodReport(
            range=DateRange(start=datetime(2025, 6, 2), end=datetime(2025, 6, 8, 23, 59)),
            summary=SessionsSummary(total_sessions=0, total_enrolled=0),
            sessions=[],
        )
        html = render_report_html("semanal", report)
        assert "02/06/2025" in html
        assert "Sin registros" in html
        assert "Prom. calificación" in html

    def test_unknown_kind(self):
        with pytest.raises(InvalidInput):
            render_report_html("mensual", student_report())

    def test_mismatched_data(self):
        with pytest.raises(TypeError):
            render_report_html("tutor", student_report())


class TestReportFilename:

    def test_names(self):
        assert report_filename("estudiante", 7) == "reporte-estudiante-7.pdf"
        assert report_filename("tutor", 3) == "reporte-tutor-3.pdf"
        assert report_filename("semanal") == "reporte-semanal.pdf"
        assert report_filename("semanal", 5) == "reporte-semanal.pdf"


class TestPdfEndpoint:

    def test_student_pdf(self, client, student):
        with patch("routers.reports.generate_pdf", AsyncMock(return_value=FAKE_PDF)) as generate:
            response = client.get("/api/reportes/pdf", params={"tipo": "estudiante"},
                                  headers=auth_headers(student.user))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == (
            f'attachment; filename="reporte-estudiante-{student.id}.pdf"'
        )
        assert response.content == FAKE_PDF
        assert "Luis Estudiante" in generate.call_args.args[0]

    def test_weekly_pdf_admin(self, client, admin_user):
        with patch("routers.reports.generate_pdf", AsyncMock(return_value=FAKE_PDF)):
            response = client.get(
                "/api/reportes/pdf",
                params={"tipo": "semanal", "from": "2025-06-02T00:00:00", "to": "2025-06-08T23:59:59"},
                headers=auth_headers(admin_user),
            )
        assert response.status_code == 200
        assert 'filename="reporte-semanal.pdf"' in response.headers["content-disposition"]

    def test_weekly_pdf_forbidden_for_student(self, client, student):
        with patch("routers.reports.generate_pdf", AsyncMock(return_value=FAKE_PDF)) as generate:
            response = client.get("/api/reportes/pdf", params={"tipo": "semanal"},
                                  headers=auth_headers(student.user))
        assert response.status_code == 403
        generate.assert_not_called()

    @pytest.mark.parametrize("params", [{}, {"tipo": "mensual"}])
    def test_bad_kind(self, client, admin_user, params):
        response = client.get("/api/reportes/pdf", params=params, headers=auth_headers(admin_user))
        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"

    def test_admin_tutor_pdf_requires_id(self, client, admin_user, tutor):
        with patch("routers.reports.generate_pdf", AsyncMock(return_value=FAKE_PDF)):
            missing = client.get("/api/reportes/pdf", params={"tipo": "tutor"}, headers=auth_headers(admin_user))
            ok = client.get("/api/reportes/pdf", params={"tipo": "tutor", "id": tutor.id},
                            headers=auth_headers(admin_user))
        assert missing.status_code == 400
        assert ok.status_code == 200
