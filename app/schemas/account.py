"""Pydantic request/response schemas for farmer and mayor accounts."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.enums import SubscriptionStatusEnum


def _blank_to_none(value: object) -> object:
	if isinstance(value, str) and not value.strip():
		return None
	return value


# ── Farmers ─────────────────────────────────────────────────────────────────


class FarmerCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	company_code: str = Field(min_length=1, max_length=64)
	village: str = Field(min_length=1, max_length=255)
	password: str = Field(min_length=1, max_length=128)
	email: EmailStr | None = None
	phone: str | None = Field(default=None, max_length=64)
	color: str | None = Field(default=None, max_length=64)

	normalize_blank = field_validator("email", "phone", "color", mode="before")(_blank_to_none)


class FarmerUpdate(BaseModel):
	"""Partial update.  Blank email/phone/color clear the field; the password is never changed here."""

	name: str | None = Field(default=None, min_length=1, max_length=255)
	company_code: str | None = Field(default=None, min_length=1, max_length=64)
	village: str | None = Field(default=None, min_length=1, max_length=255)
	email: EmailStr | None = None
	phone: str | None = Field(default=None, max_length=64)
	color: str | None = Field(default=None, max_length=64)

	normalize_blank = field_validator("email", "phone", "color", mode="before")(_blank_to_none)


class FarmerRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	name: str
	company_code: str
	village: str
	email: str | None = None
	phone: str | None = None
	color: str | None = None
	created_at: datetime
	updated_at: datetime


# ── Mayors ──────────────────────────────────────────────────────────────────


class MayorCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	village: str = Field(min_length=1, max_length=255)
	email: EmailStr
	password: str = Field(min_length=1, max_length=128)


class MayorUpdate(BaseModel):
	name: str | None = Field(default=None, min_length=1, max_length=255)
	email: EmailStr | None = None


class MayorStatusUpdate(BaseModel):
	"""Omitting ``subscription_end_date`` keeps the stored date; an explicit null clears it."""

	status: SubscriptionStatusEnum
	subscription_end_date: datetime | None = None


class MayorRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	name: str
	village: str
	email: str
	subscription_status: SubscriptionStatusEnum
	subscription_end_date: datetime | None = None
	created_at: datetime
	updated_at: datetime
