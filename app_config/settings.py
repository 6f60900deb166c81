"""
Application settings read from the environment.

Database and JWT settings live next to their modules (database.py,
auth/jwt_handler.py); everything else the services need is here.
"""
import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]

# Civil timezone used for availability matching, "no past bookings" and week ranges
APP_TIMEZONE = ZoneInfo(os.getenv("APP_TIMEZONE", "America/Guayaquil"))

# Outbound email. Sending is skipped (and logged) when SMTP_HOST is not configured.
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
EMAIL_FROM = os.getenv("EMAIL_FROM") or SMTP_USER
SMTP_TIMEOUT_SECONDS = 10

APP_NAME = "Gestión de Tutorías"
