"""
Tutor weekly availability: parsing, validation and matching.

Availability is stored as a mapping of day name to time ranges:

    {"lunes": ["08:00-10:00", "14:00-16:00"], "miércoles": ["09:00-11:00"]}

Day keys are matched case- and accent-insensitively. Each range is a
half-open window: the start minute is bookable, the end minute is not.
"""
import json
import re
import unicodedata
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from constants import SPANISH_DAY_NAMES
from errors import InvalidInput

_RANGE_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)-([01]\d|2[0-4]):([0-5]\d)$")


def normalize_day_key(value: Any) -> str:
    """'Miércoles' -> 'miercoles'"""
    decomposed = unicodedata.normalize("NFD", str(value or "").strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def day_name_for(moment: datetime, day_names: Sequence[str] = SPANISH_DAY_NAMES) -> str:
    """Day name of `moment` from a Sunday-first table (Python's weekday() is Monday-first)."""
    return day_names[(moment.weekday() + 1) % 7]


def time_to_minutes(value: Any) -> Optional[int]:
    """'08:30' -> 510. Returns None when either side is not an integer."""
    parts = str(value).strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    return hours * 60 + minutes


def parse_range(value: Any) -> Optional[tuple[int, int]]:
    """'08:00-10:00' -> (480, 600), or None when unparsable."""
    parts = str(value).split("-")
    if len(parts) != 2:
        return None
    start, end = time_to_minutes(parts[0]), time_to_minutes(parts[1])
    if start is None or end is None:
        return None
    return start, end


def parse_weekly_availability(raw: Any) -> Optional[dict]:
    """
    Lenient read of a stored availability value.

    Accepts a mapping or its JSON text. Returns None when nothing usable is
    configured, which callers treat as "no availability".
    """
    if not raw:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, dict) or not raw:
        return None
    return raw


def ranges_for_day(availability: dict, day_name: str) -> Optional[list]:
    """Ranges declared for `day_name`, matching keys after normalization."""
    wanted = normalize_day_key(day_name)
    for key, ranges in availability.items():
        if normalize_day_key(key) == wanted:
            return ranges
    return None


def is_time_within_ranges(moment: datetime, ranges: Iterable[Any]) -> bool:
    """True when the minute of day of `moment` falls inside any [start, end) range."""
    minute_of_day = moment.hour * 60 + moment.minute
    for item in ranges or []:
        parsed = parse_range(item)
        if parsed is None:
            continue
        start, end = parsed
        if start <= minute_of_day < end:
            return True
    return False


def is_within_availability(
    availability: Any,
    requested: datetime,
    day_names: Sequence[str] = SPANISH_DAY_NAMES,
) -> bool:
    """
    Whether `requested` (local civil time) falls inside the tutor's availability.

    Missing or unparsable availability never matches.
    """
    parsed = parse_weekly_availability(availability)
    if parsed is None:
        return False
    ranges = ranges_for_day(parsed, day_name_for(requested, day_names))
    if not isinstance(ranges, list) or not ranges:
        return False
    return is_time_within_ranges(requested, ranges)


def check_availability(
    availability: Any,
    requested: datetime,
    day_names: Sequence[str] = SPANISH_DAY_NAMES,
) -> None:
    """
    Same decision as is_within_availability, raising InvalidInput with the reason.
    """
    parsed = parse_weekly_availability(availability)
    if parsed is None:
        raise InvalidInput("El tutor no tiene disponibilidad configurada")

    day = day_name_for(requested, day_names)
    ranges = ranges_for_day(parsed, day)
    if not isinstance(ranges, list) or not ranges:
        raise InvalidInput(f"El tutor no atiende el día {day}")

    if not is_time_within_ranges(requested, ranges):
        raise InvalidInput(
            f"La hora {requested:%H:%M} no coincide con la disponibilidad del tutor el día {day}"
        )


def validate_weekly_availability(
    raw: Any,
    day_names: Sequence[str] = SPANISH_DAY_NAMES,
) -> dict:
    """
    Strict validation applied when availability is written.

    Keys must name a known day (accents and case ignored) and every range
    must be 'HH:MM-HH:MM' with the end after the start. Returns the value
    re-keyed by normalized day name, ranges sorted.
    """
    if not isinstance(raw, dict):
        raise InvalidInput("La disponibilidad debe ser un objeto {día: [rangos]}")

    known = {normalize_day_key(name) for name in day_names}
    result: dict[str, list[str]] = {}

    for key, ranges in raw.items():
        day = normalize_day_key(key)
        if day not in known:
            raise InvalidInput(f"Día inválido en disponibilidad: {key}")
        if not isinstance(ranges, list):
            raise InvalidInput(f"Los rangos de {key} deben ser una lista")

        cleaned = []
        for item in ranges:
            text = str(item).replace(" ", "")
            parsed = parse_range(text) if _RANGE_PATTERN.match(text) else None
            if parsed is None:
                raise InvalidInput(f"Rango inválido para {key}: {item} (formato HH:MM-HH:MM)")
            start, end = parsed
            if end <= start or end > 24 * 60:
                raise InvalidInput(f"Rango inválido para {key}: {item} (el fin debe ser posterior al inicio)")
            cleaned.append(text)

        if day in result:
            result[day].extend(cleaned)
        else:
            result[day] = cleaned

    for day, ranges in result.items():
        result[day] = sorted(set(ranges), key=lambda r: parse_range(r))

    return result
