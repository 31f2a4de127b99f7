"""bcrypt password hashing for farmer and mayor accounts."""

from __future__ import annotations

from passlib.context import CryptContext

from app.config import get_settings
from app.errors import ValidationError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)


def hash_password(plaintext: str) -> str:
	minimum = get_settings().min_password_length
	if len(plaintext) < minimum:
		raise ValidationError(f"password must be at least {minimum} characters")
	return pwd_context.hash(plaintext)
