"""
User accounts: registration, login and profile maintenance.

A user and its role profile are created in one transaction; a duplicate
email (or student number) surfaces as Conflict.
"""
import logging
from typing import Optional, Tuple, Union

from sqlalchemy.orm import Session

from auth.jwt_handler import create_access_token
from auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from constants import Role
from database import atomic
from errors import Conflict, Forbidden, InvalidInput, NotFound, Unauthenticated
from models import Student, Tutor, User
from schemas import ProfileUpdate, RegisterRequest
from services.availability import validate_weekly_availability

logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = (Role.STUDENT.value, Role.TUTOR.value)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _validate_term(term) -> int:
    if isinstance(term, bool) or not isinstance(term, int) or not 1 <= term <= 12:
        raise InvalidInput("Semestre inválido")
    return term


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def create_user(
    db: Session,
    email: str,
    password: str,
    name: str,
    role: str,
) -> User:
    """Add a user to the session (caller commits). Used by registration and the admin seed script."""
    email = normalize_email(email)
    if not email or "@" not in email:
        raise InvalidInput("Email inválido")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres")
    if db.query(User.id).filter(User.email == email).first():
        raise Conflict("El email ya está registrado")

    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name.strip(),
        role=role,
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user


def register(db: Session, data: RegisterRequest) -> User:
    """
    Self-service sign-up for students and tutors.

    Students need matricula, carrera and semestre (1-12); tutors need
    especialidad and departamento, and any disponibilidad is validated.
    """
    if data.role not in SELF_REGISTER_ROLES and data.role != Role.ADMIN.value:
        raise InvalidInput("Rol inválido")
    if data.role == Role.ADMIN.value:
        raise Forbidden("No se pueden registrar administradores")

    availability = None
    if data.role == Role.STUDENT.value:
        if _blank(data.student_number) or _blank(data.program) or data.term is None:
            raise InvalidInput("Datos de estudiante incompletos")
        _validate_term(data.term)
    else:
        if _blank(data.specialty) or _blank(data.department):
            raise InvalidInput("Datos de tutor incompletos")
        if data.availability is not None:
            availability = validate_weekly_availability(data.availability)

    with atomic(db, "Dato duplicado (email o matrícula)"):
        user = create_user(db, data.email, data.password, data.name, data.role)
        if data.role == Role.STUDENT.value:
            db.add(Student(
                user_id=user.id,
                student_number=data.student_number.strip(),
                program=data.program.strip(),
                term=data.term,
                phone=data.phone.strip() if data.phone else None,
            ))
        else:
            db.add(Tutor(
                user_id=user.id,
                specialty=data.specialty.strip(),
                department=data.department.strip(),
                availability=availability,
            ))

    db.refresh(user)
    logger.info("Registered %s user %s (%s)", user.role, user.id, user.email)
    return user


def authenticate(db: Session, email: str, password: str) -> str:
    """Check credentials and return a bearer token."""
    email = normalize_email(email)
    if not email or not password:
        raise InvalidInput("Email y contraseña son requeridos")

    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(user.password_hash, password):
        logger.info("Failed login for %s", email)
        raise Unauthenticated("Email o contraseña incorrectos")
    if not user.is_active:
        raise Forbidden("Usuario desactivado")

    return create_access_token({"sub": str(user.id), "email": user.email, "role": user.role})


def get_profile(db: Session, user: User) -> Tuple[User, Optional[Union[Tutor, Student]]]:
    profile = None
    if user.role == Role.STUDENT.value:
        profile = db.query(Student).filter(Student.user_id == user.id).first()
    elif user.role == Role.TUTOR.value:
        profile = db.query(Tutor).filter(Tutor.user_id == user.id).first()
    return user, profile


def update_profile(db: Session, user: User, changes: ProfileUpdate) -> Tuple[User, Optional[Union[Tutor, Student]]]:
    """
    Partial update of the user and its role profile.

    Changing the password requires the current one. Fields that do not
    belong to the user's role are ignored.
    """
    fields = changes.model_dump(exclude_unset=True)

    with atomic(db):
        user = db.query(User).filter(User.id == user.id).first()
        if not user:
            raise NotFound("Usuario no encontrado")

        if fields.get("name") is not None:
            user.name = fields["name"].strip()

        if fields.get("password") is not None:
            if not changes.current_password:
                raise InvalidInput("Debes enviar currentPassword para cambiar la contraseña")
            if not verify_password(user.password_hash, changes.current_password):
                raise Unauthenticated("Contraseña actual incorrecta")
            if len(changes.password) < MIN_PASSWORD_LENGTH:
                raise InvalidInput(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres")
            user.password_hash = hash_password(changes.password)

        _, profile = get_profile(db, user)

        if isinstance(profile, Student):
            if "phone" in fields:
                profile.phone = fields["phone"]
            if fields.get("program") is not None:
                profile.program = fields["program"].strip()
            if fields.get("term") is not None:
                profile.term = _validate_term(fields["term"])

        elif isinstance(profile, Tutor):
            if fields.get("specialty") is not None:
                profile.specialty = fields["specialty"].strip()
            if fields.get("department") is not None:
                profile.department = fields["department"].strip()
            if "availability" in fields:
                raw = fields["availability"]
                profile.availability = validate_weekly_availability(raw) if raw is not None else None

    db.refresh(user)
    if profile is not None:
        db.refresh(profile)
    logger.info("Profile of user %s updated: %s", user.id, ", ".join(sorted(changes.model_fields_set)))
    return user, profile
