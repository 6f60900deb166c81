"""
Tests for group tutoring sessions (tutorías).

Covers:
- Creation by tutors and admins
- State-gated partial updates and forward-only status transitions
- Seat floor on cupoMaximo
- Delete gating
- Listing filters and the inclusive date range
"""
import pytest
from datetime import datetime, timedelta

from conftest import auth_headers, next_weekday_at
from auth.permissions import build_actor
from constants import SessionStatus
from errors import Forbidden, InvalidInput, InvalidState, NotFound
from models import Enrollment, TutoringSession
from schemas import SessionCreate, SessionUpdate
from services.enrollment import enroll
from services.tutoring_sessions import (
    available_seats,
    create_session,
    delete_session,
    enrollment_counts,
    list_sessions,
    list_sessions_in_range,
    update_session,
)


def session_payload(**overrides) -> SessionCreate:
    data = {
        "materia": "Cálculo",
        "tema": "Integrales",
        "fecha": next_weekday_at(0, 9),
        "duracion": 90,
        "cupoMaximo": 10,
    }
    data.update(overrides)
    return SessionCreate(**data)


class TestCreateSession:

    def test_tutor_creates_own_session(self, db_session, tutor, tutor_actor):
        session = create_session(db_session, tutor_actor, session_payload())

        assert session.tutor_id == tutor.id
        assert session.status == SessionStatus.SCHEDULED.value
        assert session.modality == "presencial"
        assert available_seats(db_session, session) == 10

    def test_admin_must_name_tutor(self, db_session, tutor, admin_actor):
        with pytest.raises(InvalidInput, match="tutorId"):
            create_session(db_session, admin_actor, session_payload())

        session = create_session(db_session, admin_actor, session_payload(tutorId=tutor.id))
        assert session.tutor_id == tutor.id

    def test_admin_unknown_tutor(self, db_session, admin_actor):
        with pytest.raises(NotFound):
            create_session(db_session, admin_actor, session_payload(tutorId=999))

    def test_student_cannot_create(self, db_session, student_actor):
        with pytest.raises(Forbidden):
            create_session(db_session, student_actor, session_payload())

    def test_text_is_sanitized(self, db_session, tutor_actor):
        session = create_session(db_session, tutor_actor, session_payload(tema="<b>Series</b>"))
        assert session.topic == "Series"


class TestUpdateSession:

    def test_scheduled_session_accepts_any_field(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor)
        new_start = next_weekday_at(2, 15)

        updated = update_session(db_session, tutor_actor, session.id, SessionUpdate(
            tema="Límites", fecha=new_start, cupoMaximo=8, modalidad="virtual", enlace="https://meet.example/x",
        ))

        assert updated.topic == "Límites"
        assert updated.starts_at == new_start
        assert updated.max_seats == 8
        assert updated.modality == "virtual"

    def test_completed_session_rejects_topic(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor, status=SessionStatus.COMPLETED.value)

        with pytest.raises(InvalidInput) as exc_info:
            update_session(db_session, tutor_actor, session.id, SessionUpdate(tema="Otro"))
        assert "tema" in exc_info.value.message

        db_session.refresh(session)
        assert session.topic == "Derivadas"

    def test_completed_session_accepts_description(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor, status=SessionStatus.COMPLETED.value)

        updated = update_session(db_session, tutor_actor, session.id, SessionUpdate(descripcion="Resumen final"))
        assert updated.description == "Resumen final"

    def test_in_progress_session_gating(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor, status=SessionStatus.IN_PROGRESS.value)

        with pytest.raises(InvalidInput) as exc_info:
            update_session(db_session, tutor_actor, session.id, SessionUpdate(cupoMaximo=20, descripcion="x"))
        assert "cupoMaximo" in exc_info.value.message
        assert "descripcion" not in exc_info.value.message

        updated = update_session(db_session, tutor_actor, session.id, SessionUpdate(
            descripcion="En marcha", estado="completada",
        ))
        assert updated.status == SessionStatus.COMPLETED.value

    @pytest.mark.parametrize("current,target", [
        ("programada", "completada"),
        ("en_curso", "programada"),
        ("cancelada", "programada"),
    ])
    def test_illegal_transitions(self, db_session, tutor, tutor_actor, make_session, current, target):
        session = make_session(tutor, status=current)

        with pytest.raises(InvalidState):
            update_session(db_session, tutor_actor, session.id, SessionUpdate(estado=target))

    def test_completed_status_field_is_gated(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor, status=SessionStatus.COMPLETED.value)
        with pytest.raises(InvalidInput, match="estado"):
            update_session(db_session, tutor_actor, session.id, SessionUpdate(estado="cancelada"))

    def test_forward_transitions(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor)
        update_session(db_session, tutor_actor, session.id, SessionUpdate(estado="en_curso"))
        updated = update_session(db_session, tutor_actor, session.id, SessionUpdate(estado="completada"))
        assert updated.status == "completada"

    def test_seat_floor(self, db_session, tutor, tutor_actor, make_student, make_session):
        session = make_session(tutor, max_seats=3)
        for _ in range(2):
            enroll(db_session, build_actor(db_session, make_student().user), session.id)

        with pytest.raises(InvalidInput, match="cupoMaximo no puede ser menor"):
            update_session(db_session, tutor_actor, session.id, SessionUpdate(cupoMaximo=1))

        updated = update_session(db_session, tutor_actor, session.id, SessionUpdate(cupoMaximo=2))
        assert updated.max_seats == 2
        assert available_seats(db_session, updated) == 0

    def test_null_for_required_field_rejected(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor)
        with pytest.raises(InvalidInput, match="materia"):
            update_session(db_session, tutor_actor, session.id, SessionUpdate(materia=None))

    def test_null_clears_optional_field(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor)
        updated = update_session(db_session, tutor_actor, session.id, SessionUpdate(ubicacion=None))
        assert updated.location is None

    def test_other_tutor_forbidden(self, db_session, tutor, make_tutor, make_session):
        session = make_session(tutor)
        other = build_actor(db_session, make_tutor().user)

        with pytest.raises(Forbidden):
            update_session(db_session, other, session.id, SessionUpdate(tema="Ajeno"))

    def test_admin_may_update_any(self, db_session, tutor, admin_actor, make_session):
        session = make_session(tutor)
        updated = update_session(db_session, admin_actor, session.id, SessionUpdate(estado="cancelada"))
        assert updated.status == "cancelada"

    def test_unknown_session(self, db_session, admin_actor):
        with pytest.raises(NotFound):
            update_session(db_session, admin_actor, 555, SessionUpdate(tema="x"))


class TestDeleteSession:

    def test_delete_empty_scheduled_session(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor)
        delete_session(db_session, tutor_actor, session.id)
        assert db_session.query(TutoringSession).count() == 0

    @pytest.mark.parametrize("status", ["en_curso", "completada"])
    def test_started_sessions_cannot_be_deleted(self, db_session, tutor, tutor_actor, make_session, status):
        session = make_session(tutor, status=status)
        with pytest.raises(InvalidState, match="debe cancelarse"):
            delete_session(db_session, tutor_actor, session.id)

    def test_session_with_enrollments_cannot_be_deleted(self, db_session, tutor, tutor_actor, student_actor, make_session):
        session = make_session(tutor)
        enroll(db_session, student_actor, session.id)

        with pytest.raises(InvalidState, match="inscripciones"):
            delete_session(db_session, tutor_actor, session.id)
        assert db_session.query(Enrollment).count() == 1

    def test_cancelled_session_can_be_deleted(self, db_session, tutor, tutor_actor, make_session):
        session = make_session(tutor, status=SessionStatus.CANCELLED.value)
        delete_session(db_session, tutor_actor, session.id)
        assert db_session.query(TutoringSession).count() == 0


class TestListing:

    def test_filters_and_order(self, db_session, tutor, make_tutor, make_session):
        base = datetime(2025, 6, 2, 9, 0)
        other = make_tutor()
        first = make_session(tutor, subject="Cálculo I", starts_at=base)
        second = make_session(tutor, subject="Física", starts_at=base + timedelta(days=1))
        third = make_session(other, subject="Cálculo II", starts_at=base + timedelta(days=2),
                             status=SessionStatus.CANCELLED.value)

        assert [s.id for s in list_sessions(db_session)] == [third.id, second.id, first.id]
        assert [s.id for s in list_sessions(db_session, tutor_id=tutor.id)] == [second.id, first.id]
        assert [s.id for s in list_sessions(db_session, subject="Cálculo")] == [third.id, first.id]
        assert [s.id for s in list_sessions(db_session, status="cancelada")] == [third.id]

    def test_range_is_inclusive(self, db_session, tutor, make_session):
        start = datetime(2025, 6, 2, 9, 0)
        end = datetime(2025, 6, 4, 9, 0)
        inside_start = make_session(tutor, starts_at=start)
        inside_end = make_session(tutor, starts_at=end)
        make_session(tutor, starts_at=end + timedelta(seconds=1))

        found = list_sessions_in_range(db_session, start, end)
        assert {s.id for s in found} == {inside_start.id, inside_end.id}

    def test_range_requires_both_bounds(self, db_session):
        with pytest.raises(InvalidInput, match="desde y hasta"):
            list_sessions_in_range(db_session, datetime(2025, 6, 2), None)

    def test_inverted_range_rejected(self, db_session):
        with pytest.raises(InvalidInput, match="inválido"):
            list_sessions_in_range(db_session, datetime(2025, 6, 5), datetime(2025, 6, 2))

    def test_enrollment_counts(self, db_session, tutor, student_actor, make_session):
        full = make_session(tutor)
        empty = make_session(tutor)
        enroll(db_session, student_actor, full.id)

        assert enrollment_counts(db_session, [full.id, empty.id]) == {full.id: 1}
        assert enrollment_counts(db_session, []) == {}


class TestSessionsAPI:

    def test_create_and_fetch(self, client, tutor):
        response = client.post("/api/tutorias", json={
            "materia": "Cálculo",
            "tema": "Integrales",
            "fecha": next_weekday_at(0, 9).isoformat(),
            "duracion": 60,
            "cupoMaximo": 2,
            "modalidad": "virtual",
            "enlace": "https://meet.example/abc",
        }, headers=auth_headers(tutor.user))

        assert response.status_code == 201
        body = response.json()
        assert body["estado"] == "programada"
        assert body["inscritos"] == 0
        assert body["cuposDisponibles"] == 2

        detail = client.get(f"/api/tutorias/{body['id']}", headers=auth_headers(tutor.user))
        assert detail.status_code == 200
        assert detail.json()["tutorNombre"] == "Ana Tutora"

    def test_invalid_body_returns_400(self, client, tutor):
        response = client.post("/api/tutorias", json={"materia": "Cálculo", "cupoMaximo": 0},
                               headers=auth_headers(tutor.user))
        assert response.status_code == 400
        assert response.json()["kind"] == "InvalidInput"

    def test_update_completed_returns_400_naming_field(self, client, tutor, make_session):
        session = make_session(tutor, status=SessionStatus.COMPLETED.value)
        response = client.put(f"/api/tutorias/{session.id}", json={"tema": "Nuevo"},
                              headers=auth_headers(tutor.user))
        assert response.status_code == 400
        assert "tema" in response.json()["message"]

    def test_list_with_filters(self, client, tutor, student, make_session):
        make_session(tutor, subject="Química")
        make_session(tutor, subject="Cálculo")
        response = client.get("/api/tutorias", params={"materia": "Quím"}, headers=auth_headers(student.user))
        assert response.status_code == 200
        assert [s["materia"] for s in response.json()] == ["Química"]

    def test_range_endpoint_requires_bounds(self, client, student):
        response = client.get("/api/tutorias/rango", headers=auth_headers(student.user))
        assert response.status_code == 400

    def test_delete_returns_message(self, client, tutor, make_session):
        session = make_session(tutor)
        response = client.delete(f"/api/tutorias/{session.id}", headers=auth_headers(tutor.user))
        assert response.status_code == 200
        assert response.json() == {"message": "Tutoría eliminada"}
