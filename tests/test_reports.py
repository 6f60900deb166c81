"""
Tests for report aggregation.

Tests cover:
- Pure helpers (average, group_count, rank_top) including empty input and ties
- Student, tutor and period reports built from real rows
- Report access rules
- JSON shape of the /api/reportes endpoints
"""
import pytest
from datetime import datetime, timedelta

from conftest import auth_headers
from auth.permissions import build_actor
from constants import SessionStatus
from errors import Forbidden, InvalidInput, NotFound
from schemas import CountEntry
from services.enrollment import enroll, rate_enrollment, record_attendance
from services.reports import (
    average,
    build_period_report,
    build_student_report,
    build_tutor_report,
    group_count,
    rank_top,
    require_period_report_access,
    resolve_student_report_id,
    resolve_tutor_report_id,
)
from utils.time_utils import week_range

MONDAY = datetime(2025, 6, 2, 9, 0)


# ============================================================================
# Pure helpers
# ============================================================================

class TestAverage:

    def test_empty_is_none_not_zero(self):
        assert average([]) is None

    def test_nulls_are_ignored(self):
        assert average([None, None]) is None
        assert average([4, None, 5]) == 4.5

    def test_accepts_generators(self):
        assert average(x for x in (1, 2, 3)) == 2


class TestGroupCount:

    def test_first_seen_order(self):
        entries = group_count(["b", "a", "b", "c", "a", "b"])
        assert [(e.key, e.count) for e in entries] == [("b", 3), ("a", 2), ("c", 1)]

    def test_key_function_and_str_keys(self):
        entries = group_count([{"t": 1}, {"t": 2}, {"t": 1}], key=lambda d: d["t"])
        assert [(e.key, e.count) for e in entries] == [("1", 2), ("2", 1)]

    def test_empty(self):
        assert group_count([]) == []


class TestRankTop:

    def test_ties_keep_encounter_order(self):
        entries = group_count(["Física", "Cálculo", "Química", "Cálculo", "Física"])
        ranked = rank_top(entries)
        assert [e.key for e in ranked] == ["Física", "Cálculo", "Química"]

    def test_limit(self):
        entries = [CountEntry(key=str(i), count=i) for i in range(8)]
        ranked = rank_top(entries)
        assert [e.key for e in ranked] == ["7", "6", "5", "4", "3"]
        assert [e.key for e in rank_top(entries, limit=2)] == ["7", "6"]


class TestWeekRange:

    def test_monday_to_sunday(self):
        start, end = week_range(datetime(2025, 6, 5, 13, 45))  # Thursday
        assert start == datetime(2025, 6, 2, 0, 0)
        assert end == datetime(2025, 6, 8, 23, 59, 59, 999000)

    def test_monday_itself(self):
        start, _ = week_range(datetime(2025, 6, 2, 0, 0))
        assert start == datetime(2025, 6, 2)

    def test_sunday_belongs_to_previous_monday(self):
        start, _ = week_range(datetime(2025, 6, 8, 22, 0))
        assert start == datetime(2025, 6, 2)


# ============================================================================
# Report builders
# ============================================================================

class TestStudentReport:

    def test_no_enrollments(self, db_session, student):
        report = build_student_report(db_session, student.id)

        assert report.student.name == "Luis Estudiante"
        assert report.summary.total_enrollments == 0
        assert report.summary.average_rating is None
        assert report.summary.top_subjects == []
        assert report.enrollments == []

    def test_buckets_ratings_and_subjects(self, db_session, tutor, tutor_actor, student, student_actor, make_session):
        sessions = [
            make_session(tutor, subject="Cálculo", max_seats=5),
            make_session(tutor, subject="Física", max_seats=5),
            make_session(tutor, subject="Cálculo", max_seats=5),
        ]
        enrollments = [enroll(db_session, student_actor, s.id).enrollment for s in sessions]

        record_attendance(db_session, tutor_actor, enrollments[0].id, "asistio")
        record_attendance(db_session, tutor_actor, enrollments[1].id, "falta")
        rate_enrollment(db_session, student_actor, enrollments[0].id, 5)
        rate_enrollment(db_session, student_actor, enrollments[1].id, 2)

        report = build_student_report(db_session, student.id)
        summary = report.summary

        assert summary.total_enrollments == 3
        assert summary.attendance.attended == 1
        assert summary.attendance.absent == 1
        assert summary.attendance.excused == 0
        assert summary.attendance.pending == 1
        assert summary.average_rating == 3.5
        assert [(e.key, e.count) for e in summary.top_subjects] == [("Cálculo", 2), ("Física", 1)]
        assert [row.enrollment_id for row in report.enrollments] == [e.id for e in reversed(enrollments)]

    def test_unrated_enrollments_give_null_average(self, db_session, tutor, student, student_actor, make_session):
        enroll(db_session, student_actor, make_session(tutor).id)
        assert build_student_report(db_session, student.id).summary.average_rating is None

    def test_unknown_student(self, db_session):
        with pytest.raises(NotFound):
            build_student_report(db_session, 404)


class TestTutorReport:

    def test_summary(self, db_session, tutor, make_student, make_session):
        first = make_session(tutor, subject="Cálculo", max_seats=3, starts_at=MONDAY)
        second = make_session(tutor, subject="Física", max_seats=3, starts_at=MONDAY + timedelta(days=1))
        make_session(tutor, subject="Cálculo", status=SessionStatus.CANCELLED.value,
                     starts_at=MONDAY + timedelta(days=2))

        actors = [build_actor(db_session, make_student().user) for _ in range(2)]
        for actor in actors:
            enrollment = enroll(db_session, actor, first.id).enrollment
            rate_enrollment(db_session, actor, enrollment.id, 4)
        enroll(db_session, actors[0], second.id)

        report = build_tutor_report(db_session, tutor.id)
        summary = report.summary

        assert report.tutor.name == "Ana Tutora"
        assert summary.total_sessions == 3
        assert summary.total_enrolled == 3
        assert summary.average_rating == 4
        assert [(e.key, e.count) for e in summary.by_status] == [("cancelada", 1), ("programada", 2)]
        assert summary.top_subjects[0].key == "Cálculo"
        assert summary.top_tutors is None

        rows = {row.id: row for row in report.sessions}
        assert rows[first.id].enrolled_count == 2
        assert rows[first.id].average_rating == 4
        assert rows[second.id].average_rating is None

    def test_tutor_without_sessions(self, db_session, tutor):
        report = build_tutor_report(db_session, tutor.id)
        assert report.summary.total_sessions == 0
        assert report.summary.average_rating is None


class TestPeriodReport:

    def test_inclusive_range_and_top_tutors(self, db_session, tutor, make_tutor, make_session):
        other = make_tutor(name="Beto Tutor")
        start = MONDAY
        end = MONDAY + timedelta(days=2)

        make_session(other, starts_at=start)
        make_session(tutor, starts_at=start + timedelta(hours=1))
        make_session(tutor, starts_at=end)
        make_session(tutor, starts_at=end + timedelta(seconds=1))
        make_session(other, starts_at=start - timedelta(seconds=1))

        report = build_period_report(db_session, start, end)

        assert report.range.start == start
        assert report.range.end == end
        assert report.summary.total_sessions == 3
        top = report.summary.top_tutors
        assert [(e.key, e.count, e.label) for e in top] == [
            (str(tutor.id), 2, "Ana Tutora"),
            (str(other.id), 1, "Beto Tutor"),
        ]

    def test_defaults_to_reference_week(self, db_session, tutor, make_session):
        inside = make_session(tutor, starts_at=datetime(2025, 6, 8, 23, 0))
        make_session(tutor, starts_at=datetime(2025, 6, 9, 0, 0))

        report = build_period_report(db_session, reference=datetime(2025, 6, 4, 12, 0))

        assert report.range.start == datetime(2025, 6, 2)
        assert [row.id for row in report.sessions] == [inside.id]

    def test_one_bound_only_uses_week(self, db_session):
        report = build_period_report(db_session, start=datetime(2020, 1, 1), reference=datetime(2025, 6, 4))
        assert report.range.start == datetime(2025, 6, 2)

    def test_inverted_range(self, db_session):
        with pytest.raises(InvalidInput, match="from/to"):
            build_period_report(db_session, MONDAY, MONDAY - timedelta(days=1))

    def test_empty_period(self, db_session):
        report = build_period_report(db_session, MONDAY, MONDAY + timedelta(days=1))
        assert report.summary.total_sessions == 0
        assert report.summary.average_rating is None
        assert report.summary.top_tutors == []


# ============================================================================
# Access rules
# ============================================================================

class TestReportAccess:

    def test_student_always_gets_own(self, student, student_actor):
        assert resolve_student_report_id(student_actor, None) == student.id
        assert resolve_student_report_id(student_actor, 999) == student.id

    def test_admin_must_name_target(self, admin_actor):
        with pytest.raises(InvalidInput):
            resolve_student_report_id(admin_actor, None)
        with pytest.raises(InvalidInput):
            resolve_tutor_report_id(admin_actor, None)
        assert resolve_tutor_report_id(admin_actor, 7) == 7

    def test_cross_role_forbidden(self, tutor_actor, student_actor):
        with pytest.raises(Forbidden):
            resolve_student_report_id(tutor_actor, 1)
        with pytest.raises(Forbidden):
            resolve_tutor_report_id(student_actor, 1)

    def test_period_report_admin_only(self, admin_actor, tutor_actor):
        require_period_report_access(admin_actor)
        with pytest.raises(Forbidden):
            require_period_report_access(tutor_actor)


# ============================================================================
# API tests
# ============================================================================

class TestReportsAPI:

    def test_student_report_json(self, client, student):
        response = client.get("/api/reportes/estudiante", headers=auth_headers(student.user))

        assert response.status_code == 200
        body = response.json()
        assert body["estudiante"]["nombre"] == "Luis Estudiante"
        assert body["resumen"]["totalInscripciones"] == 0
        assert body["resumen"]["promedioCalificacion"] is None
        assert body["resumen"]["asistencia"] == {"asistio": 0, "falta": 0, "justificada": 0, "pendiente": 0}
        assert body["inscripciones"] == []

    def test_admin_student_report_by_path(self, client, admin_user, student):
        response = client.get(f"/api/reportes/estudiante/{student.id}", headers=auth_headers(admin_user))
        assert response.status_code == 200
        assert response.json()["estudiante"]["id"] == student.id

    def test_tutor_report_json(self, client, tutor, make_session):
        make_session(tutor)
        response = client.get("/api/reportes/tutor", headers=auth_headers(tutor.user))

        assert response.status_code == 200
        body = response.json()
        assert body["resumen"]["totalTutorias"] == 1
        assert body["resumen"]["porEstado"] == [{"key": "programada", "count": 1, "label": None}]
        assert body["tutorias"][0]["tutorNombre"] == "Ana Tutora"

    def test_weekly_report(self, client, admin_user, tutor, make_session):
        make_session(tutor, starts_at=MONDAY)
        response = client.get(
            "/api/reportes/semanal",
            params={"from": "2025-06-02T00:00:00", "to": "2025-06-08T23:59:59"},
            headers=auth_headers(admin_user),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["rango"]["from"].startswith("2025-06-02")
        assert body["resumen"]["totalTutorias"] == 1
        assert body["resumen"]["topTutores"][0]["label"] == "Ana Tutora"

    def test_weekly_report_forbidden_for_tutor(self, client, tutor):
        response = client.get("/api/reportes/semanal", headers=auth_headers(tutor.user))
        assert response.status_code == 403
        assert response.json()["kind"] == "Forbidden"
