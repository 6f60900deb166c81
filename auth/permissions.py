"""
Capability checks parameterized by resource ownership.

Instead of comparing role strings in every operation, services build an
Actor once and ask it whether it may act on a resource owned by a given
tutor and/or student profile.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from constants import Role
from errors import Forbidden
from models import User, Tutor, Student


@dataclass(frozen=True)
class Actor:
    """The authenticated caller with its resolved profile ids."""
    user_id: int
    role: str
    tutor_id: Optional[int] = None
    student_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def owns(self, tutor_id: Optional[int] = None, student_id: Optional[int] = None) -> bool:
        """True when the actor's own profile is one of the given owners."""
        if tutor_id is not None and self.tutor_id == tutor_id:
            return True
        if student_id is not None and self.student_id == student_id:
            return True
        return False

    def can_act_on(self, tutor_id: Optional[int] = None, student_id: Optional[int] = None) -> bool:
        """Admins act on anything; everyone else only on resources they own."""
        return self.is_admin or self.owns(tutor_id=tutor_id, student_id=student_id)

    def require(
        self,
        tutor_id: Optional[int] = None,
        student_id: Optional[int] = None,
        message: str = "Forbidden",
    ) -> None:
        if not self.can_act_on(tutor_id=tutor_id, student_id=student_id):
            raise Forbidden(message)

    def require_student(self, message: str = "Solo estudiantes pueden realizar esta acción") -> int:
        """The actor's own student profile id, or Forbidden."""
        if self.student_id is None:
            raise Forbidden(message)
        return self.student_id

    def require_tutor(self, message: str = "Solo tutores pueden realizar esta acción") -> int:
        """The actor's own tutor profile id, or Forbidden."""
        if self.tutor_id is None:
            raise Forbidden(message)
        return self.tutor_id


def build_actor(db: Session, user: User) -> Actor:
    """Resolve the profile ids owned by `user`."""
    tutor_id = None
    student_id = None
    if user.role == Role.TUTOR.value:
        tutor_id = db.query(Tutor.id).filter(Tutor.user_id == user.id).scalar()
    elif user.role == Role.STUDENT.value:
        student_id = db.query(Student.id).filter(Student.user_id == user.id).scalar()
    return Actor(user_id=user.id, role=user.role, tutor_id=tutor_id, student_id=student_id)
