"""
Pydantic schemas for API request/response validation.

Attribute names are English; the wire format keeps the Spanish camelCase
keys clients already use (aliases). Responses are serialized by alias.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict
from datetime import datetime

from constants import (
    AppointmentStatus, SessionStatus, Modality, AttendanceStatus, RATING_MIN, RATING_MAX,
)

# Stored as {"lunes": ["08:00-10:00"], ...}; validated by
# services.availability.validate_weekly_availability on write.
WeeklyAvailability = Dict[str, List[str]]


class WireModel(BaseModel):
    """Base model: accept either alias or attribute name, store enum values."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


class ResponseModel(WireModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, from_attributes=True)


# ============================================
# Auth / Profile Schemas
# ============================================

class LoginRequest(WireModel):
    email: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=1)


class TokenResponse(WireModel):
    token: str


class RegisterRequest(WireModel):
    """Registration; the profile fields required depend on the role."""
    email: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=1)
    name: str = Field(..., alias="nombre", min_length=1, max_length=100)
    role: str = Field(..., alias="rol")

    # Student profile
    student_number: Optional[str] = Field(None, alias="matricula", max_length=20)
    program: Optional[str] = Field(None, alias="carrera", max_length=100)
    term: Optional[int] = Field(None, alias="semestre")
    phone: Optional[str] = Field(None, alias="telefono", max_length=15)

    # Tutor profile
    specialty: Optional[str] = Field(None, alias="especialidad", max_length=100)
    department: Optional[str] = Field(None, alias="departamento", max_length=100)
    availability: Optional[WeeklyAvailability] = Field(None, alias="disponibilidad")


class ProfileUpdate(WireModel):
    """Partial profile update; only the fields sent are changed."""
    name: Optional[str] = Field(None, alias="nombre", min_length=1, max_length=100)
    password: Optional[str] = None
    current_password: Optional[str] = Field(None, alias="currentPassword")

    phone: Optional[str] = Field(None, alias="telefono", max_length=15)
    program: Optional[str] = Field(None, alias="carrera", max_length=100)
    term: Optional[int] = Field(None, alias="semestre")

    specialty: Optional[str] = Field(None, alias="especialidad", max_length=100)
    department: Optional[str] = Field(None, alias="departamento", max_length=100)
    availability: Optional[WeeklyAvailability] = Field(None, alias="disponibilidad")


class UserResponse(ResponseModel):
    id: int
    email: str
    name: str = Field(..., alias="nombre")
    role: str = Field(..., alias="rol")
    is_active: bool = Field(..., alias="activo")


class TutorProfileResponse(ResponseModel):
    id: int
    user_id: int = Field(..., alias="userId")
    specialty: str = Field(..., alias="especialidad")
    department: str = Field(..., alias="departamento")
    availability: Optional[WeeklyAvailability] = Field(None, alias="disponibilidad")


class StudentProfileResponse(ResponseModel):
    id: int
    user_id: int = Field(..., alias="userId")
    student_number: str = Field(..., alias="matricula")
    program: str = Field(..., alias="carrera")
    term: int = Field(..., alias="semestre")
    phone: Optional[str] = Field(None, alias="telefono")


class ProfileResponse(WireModel):
    user: UserResponse
    profile: Optional[TutorProfileResponse | StudentProfileResponse] = None


class PersonBasic(WireModel):
    """Minimal person info for report headers and listings."""
    id: int
    name: Optional[str] = Field(None, alias="nombre")
    email: Optional[str] = None


# ============================================
# Appointment (Agendamiento) Schemas
# ============================================

class AppointmentCreate(WireModel):
    """Required fields are checked by the booking service so they fail as InvalidInput."""
    tutor_id: Optional[int] = Field(None, alias="tutorId")
    scheduled_at: Optional[datetime] = Field(None, alias="fechaProgramada")
    subject: Optional[str] = Field(None, alias="materia", max_length=100)
    student_id: Optional[int] = Field(None, alias="estudianteId")


class AppointmentResponse(ResponseModel):
    id: int
    student_id: int = Field(..., alias="estudianteId")
    tutor_id: int = Field(..., alias="tutorId")
    scheduled_at: datetime = Field(..., alias="fechaProgramada")
    subject: str = Field(..., alias="materia")
    status: AppointmentStatus = Field(..., alias="estado")
    notification_sent: bool = Field(False, alias="notificacionEnviada")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    tutor_name: Optional[str] = Field(None, alias="tutorNombre")
    student_name: Optional[str] = Field(None, alias="estudianteNombre")


class MessageResponse(WireModel):
    message: str


# ============================================
# Tutoring Session (Tutoría) Schemas
# ============================================

class SessionCreate(WireModel):
    tutor_id: Optional[int] = Field(None, alias="tutorId", description="Required when an admin creates the session")
    subject: str = Field(..., alias="materia", min_length=1, max_length=100)
    topic: str = Field(..., alias="tema", min_length=1)
    description: Optional[str] = Field(None, alias="descripcion")
    starts_at: datetime = Field(..., alias="fecha")
    duration_minutes: int = Field(..., alias="duracion", gt=0)
    max_seats: int = Field(..., alias="cupoMaximo", ge=1)
    modality: Modality = Field(Modality.IN_PERSON.value, alias="modalidad")
    location: Optional[str] = Field(None, alias="ubicacion", max_length=255)
    meeting_link: Optional[str] = Field(None, alias="enlace", max_length=500)


class SessionUpdate(WireModel):
    """Partial update; which fields are accepted depends on the session status."""
    subject: Optional[str] = Field(None, alias="materia", min_length=1, max_length=100)
    topic: Optional[str] = Field(None, alias="tema", min_length=1)
    description: Optional[str] = Field(None, alias="descripcion")
    starts_at: Optional[datetime] = Field(None, alias="fecha")
    duration_minutes: Optional[int] = Field(None, alias="duracion", gt=0)
    max_seats: Optional[int] = Field(None, alias="cupoMaximo", ge=1)
    modality: Optional[Modality] = Field(None, alias="modalidad")
    location: Optional[str] = Field(None, alias="ubicacion", max_length=255)
    meeting_link: Optional[str] = Field(None, alias="enlace", max_length=500)
    status: Optional[SessionStatus] = Field(None, alias="estado")


class SessionResponse(ResponseModel):
    id: int
    tutor_id: int = Field(..., alias="tutorId")
    subject: str = Field(..., alias="materia")
    topic: str = Field(..., alias="tema")
    description: Optional[str] = Field(None, alias="descripcion")
    starts_at: datetime = Field(..., alias="fecha")
    duration_minutes: int = Field(..., alias="duracion")
    max_seats: int = Field(..., alias="cupoMaximo")
    modality: Modality = Field(..., alias="modalidad")
    location: Optional[str] = Field(None, alias="ubicacion")
    meeting_link: Optional[str] = Field(None, alias="enlace")
    status: SessionStatus = Field(..., alias="estado")

    enrolled_count: int = Field(0, alias="inscritos", ge=0)
    seats_available: int = Field(0, alias="cuposDisponibles", ge=0)
    tutor_name: Optional[str] = Field(None, alias="tutorNombre")


# ============================================
# Enrollment (Inscripción) Schemas
# ============================================

class EnrollmentCreate(WireModel):
    session_id: int = Field(..., alias="tutoriaId", gt=0)
    student_id: Optional[int] = Field(None, alias="estudianteId", description="Only admins enroll someone else")


class AttendanceUpdate(WireModel):
    attendance: str = Field(..., alias="asistencia")


class RatingUpdate(WireModel):
    rating: int = Field(..., alias="calificacion")
    comment: Optional[str] = Field(None, alias="comentario")


class EnrollmentResponse(ResponseModel):
    id: int
    session_id: int = Field(..., alias="tutoriaId")
    student_id: int = Field(..., alias="estudianteId")
    attendance: AttendanceStatus = Field(..., alias="asistencia")
    rating: Optional[int] = Field(None, alias="calificacion", ge=RATING_MIN, le=RATING_MAX)
    comment: Optional[str] = Field(None, alias="comentario")
    enrolled_at: datetime = Field(..., alias="fechaInscripcion")

    student_name: Optional[str] = Field(None, alias="estudianteNombre")
    session: Optional[SessionResponse] = Field(None, alias="tutoria")


class EnrollmentCreated(WireModel):
    message: str
    enrollment: EnrollmentResponse = Field(..., alias="inscripcion")
    seats_available: int = Field(..., alias="cuposDisponibles")


# ============================================
# Report Schemas
# ============================================

class CountEntry(WireModel):
    key: str
    count: int
    label: Optional[str] = None


class AttendanceSummary(WireModel):
    attended: int = Field(0, alias="asistio")
    absent: int = Field(0, alias="falta")
    excused: int = Field(0, alias="justificada")
    pending: int = Field(0, alias="pendiente")


class StudentReportSummary(WireModel):
    total_enrollments: int = Field(..., alias="totalInscripciones")
    attendance: AttendanceSummary = Field(..., alias="asistencia")
    average_rating: Optional[float] = Field(None, alias="promedioCalificacion")
    top_subjects: List[CountEntry] = Field(default_factory=list, alias="topMaterias")


class StudentReportRow(WireModel):
    enrollment_id: int = Field(..., alias="inscripcionId")
    enrolled_at: datetime = Field(..., alias="fechaInscripcion")
    session_id: int = Field(..., alias="tutoriaId")
    starts_at: Optional[datetime] = Field(None, alias="fecha")
    subject: Optional[str] = Field(None, alias="materia")
    topic: Optional[str] = Field(None, alias="tema")
    session_status: Optional[str] = Field(None, alias="estado")
    tutor_name: Optional[str] = Field(None, alias="tutorNombre")
    attendance: str = Field(..., alias="asistencia")
    rating: Optional[int] = Field(None, alias="calificacion")


class StudentReport(WireModel):
    student: PersonBasic = Field(..., alias="estudiante")
    summary: StudentReportSummary = Field(..., alias="resumen")
    enrollments: List[StudentReportRow] = Field(default_factory=list, alias="inscripciones")


class SessionReportRow(WireModel):
    id: int
    starts_at: datetime = Field(..., alias="fecha")
    subject: str = Field(..., alias="materia")
    topic: str = Field(..., alias="tema")
    status: str = Field(..., alias="estado")
    tutor_id: int = Field(..., alias="tutorId")
    tutor_name: Optional[str] = Field(None, alias="tutorNombre")
    enrolled_count: int = Field(0, alias="inscritos")
    average_rating: Optional[float] = Field(None, alias="promedioCalificacion")


class SessionsSummary(WireModel):
    total_sessions: int = Field(..., alias="totalTutorias")
    total_enrolled: int = Field(..., alias="totalInscritos")
    average_rating: Optional[float] = Field(None, alias="promedioCalificacion")
    by_status: List[CountEntry] = Field(default_factory=list, alias="porEstado")
    top_subjects: List[CountEntry] = Field(default_factory=list, alias="topMaterias")
    top_tutors: Optional[List[CountEntry]] = Field(None, alias="topTutores")


class TutorReport(WireModel):
    tutor: PersonBasic
    summary: SessionsSummary = Field(..., alias="resumen")
    sessions: List[SessionReportRow] = Field(default_factory=list, alias="tutorias")


class DateRange(WireModel):
    start: datetime = Field(..., alias="from")
    end: datetime = Field(..., alias="to")


class PeriodReport(WireModel):
    range: DateRange = Field(..., alias="rango")
    summary: SessionsSummary = Field(..., alias="resumen")
    sessions: List[SessionReportRow] = Field(default_factory=list, alias="tutorias")
