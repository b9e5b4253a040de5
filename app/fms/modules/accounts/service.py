from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.fms.errors import NotFoundError, ValidationError
from app.fms.models import User
from app.fms.modules.facilities.models import Facility
from app.fms.modules.occupancy.service import vacate_all_for_occupant
from app.fms.utils import clean_str, utcnow

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_registration(name: str | None, email: str | None, password: str | None) -> list[str]:
    errors = []
    name = clean_str(name)
    email = normalize_email(email)
    if not name:
        errors.append("Name is required.")
    elif len(name) > 100:
        errors.append("Name must be at most 100 characters.")
    if not email:
        errors.append("Email is required.")
    elif "@" not in email or len(email) > 255:
        errors.append("Email address is invalid.")
    if not password:
        errors.append("Password is required.")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return errors


def find_user_by_email(s: Session, email: str | None) -> User | None:
    return s.scalars(select(User).where(User.email == normalize_email(email))).one_or_none()


def register_user(s: Session, name: str | None, email: str | None, password: str | None) -> User:
    errors = validate_registration(name, email, password)
    if errors:
        raise ValidationError(errors)
    if find_user_by_email(s, email) is not None:
        raise ValidationError("An account with this email already exists.")

    user = User(
        name=clean_str(name),
        email=normalize_email(email),
        password_hash=generate_password_hash(password),
        is_active=True,
        created_at=utcnow(),
    )
    s.add(user)
    try:
        s.flush()
    except IntegrityError as e:
        s.rollback()
        raise ValidationError("An account with this email already exists.") from e
    logger.info("User registered (user_id=%s)", user.id)
    return user


def authenticate(s: Session, email: str | None, password: str | None) -> User | None:
    user = find_user_by_email(s, email)
    if not user or not user.is_active or not check_password_hash(user.password_hash, password or ""):
        return None
    return user


def delete_user(s: Session, user_id: int) -> int:
    """
    Delete an account. Refused while the user still owns facilities; units the
    user occupies are vacated first. Returns how many units were released.
    """
    user = s.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")

    owned = s.scalar(select(func.count(Facility.id)).where(Facility.owner_id == user_id)) or 0
    if owned:
        raise ValidationError(
            f"You still own {owned} facilit{'y' if owned == 1 else 'ies'}. Delete them before deleting your account."
        )

    released = vacate_all_for_occupant(s, user_id)
    s.delete(user)
    s.flush()
    logger.info("User deleted (user_id=%s units_released=%s)", user_id, released)
    return released
