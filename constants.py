"""
Shared constants for the backend.

Centralizes role names, status values and the lifecycle rules used across
services and routers. Values are the ones stored in the database and sent
over the wire.
"""
from enum import Enum


class Role(str, Enum):
    """User roles. Using str + Enum allows direct comparison with string values."""
    ADMIN = 'admin'
    TUTOR = 'tutor'
    STUDENT = 'estudiante'


class AppointmentStatus(str, Enum):
    """1:1 appointment (agendamiento) statuses."""
    PENDING = 'pendiente'
    CONFIRMED = 'confirmada'
    CANCELLED = 'cancelada'


class SessionStatus(str, Enum):
    """Group tutoring session (tutoría) statuses."""
    SCHEDULED = 'programada'
    IN_PROGRESS = 'en_curso'
    COMPLETED = 'completada'
    CANCELLED = 'cancelada'


class Modality(str, Enum):
    IN_PERSON = 'presencial'
    REMOTE = 'virtual'
    HYBRID = 'hibrida'


class AttendanceStatus(str, Enum):
    """Attendance (asistencia) of an enrollment."""
    PENDING = 'pendiente'
    ATTENDED = 'asistio'
    ABSENT = 'falta'
    EXCUSED = 'justificada'


# Appointment statuses that occupy a tutor's slot
ACTIVE_APPOINTMENT_STATUSES = [
    AppointmentStatus.PENDING.value,
    AppointmentStatus.CONFIRMED.value,
]

# Attendance values a tutor may record (pending is the initial state only)
RECORDABLE_ATTENDANCE = [
    AttendanceStatus.ATTENDED.value,
    AttendanceStatus.ABSENT.value,
    AttendanceStatus.EXCUSED.value,
]

# Forward-only session progression; completed and cancelled are terminal
SESSION_STATUS_TRANSITIONS = {
    SessionStatus.SCHEDULED.value: {
        SessionStatus.IN_PROGRESS.value,
        SessionStatus.CANCELLED.value,
    },
    SessionStatus.IN_PROGRESS.value: {
        SessionStatus.COMPLETED.value,
        SessionStatus.CANCELLED.value,
    },
    SessionStatus.COMPLETED.value: set(),
    SessionStatus.CANCELLED.value: set(),
}

# Fields that may still change once a session has left the scheduled state.
# Keys are session statuses; statuses not listed have no field restriction.
SESSION_MUTABLE_FIELDS = {
    SessionStatus.COMPLETED.value: {'description'},
    SessionStatus.IN_PROGRESS.value: {'description', 'status'},
}

# Sessions in these statuses must be cancelled, never hard-deleted
UNDELETABLE_SESSION_STATUSES = [
    SessionStatus.IN_PROGRESS.value,
    SessionStatus.COMPLETED.value,
]

# Day names indexed Sunday=0 .. Saturday=6, accent-free
SPANISH_DAY_NAMES = (
    'domingo', 'lunes', 'martes', 'miercoles', 'jueves', 'viernes', 'sabado',
)

# Number of entries kept in "top" rankings of reports
TOP_RANKING_LIMIT = 5

RATING_MIN = 1
RATING_MAX = 5

REPORT_KINDS = ('estudiante', 'tutor', 'semanal')
