"""Human-readable Spanish formatting for emails and PDF reports."""
from datetime import datetime
from typing import Optional

from constants import SPANISH_DAY_NAMES

_MONTHS = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

_DISPLAY_DAYS = {
    "miercoles": "miércoles",
    "sabado": "sábado",
}


def display_day_name(value: datetime) -> str:
    day = SPANISH_DAY_NAMES[(value.weekday() + 1) % 7]
    return _DISPLAY_DAYS.get(day, day)


def format_datetime_es(value: Optional[datetime]) -> str:
    """e.g. 'lunes, 2 de junio de 2025, 09:00'"""
    if value is None:
        return ""
    return (
        f"{display_day_name(value)}, {value.day} de {_MONTHS[value.month - 1]} "
        f"de {value.year}, {value:%H:%M}"
    )


def format_duration(minutes: int) -> str:
    """45 -> '45 minutos', 60 -> '1 hora', 90 -> '1h 30min'"""
    if minutes < 60:
        return f"{minutes} minutos"
    hours, mins = divmod(minutes, 60)
    if mins:
        return f"{hours}h {mins}min"
    return f"{hours} hora{'s' if hours > 1 else ''}"


def format_rating(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else "-"
