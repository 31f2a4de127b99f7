"""Pydantic request/response schemas for parcel assignment."""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, Field

from app.services.reconcile import AssignmentRole, Resolution


class AssignmentRequest(BaseModel):
	owned_parcel_ids: list[str] = Field(default_factory=list)
	cultivated_parcel_ids: list[str] = Field(default_factory=list)


class ConflictResolution(BaseModel):
	parcel_id: str = Field(min_length=1)
	role: AssignmentRole
	resolution: Resolution


class AssignmentCommitRequest(AssignmentRequest):
	"""Commit request.

	With ``resolutions`` the commit applies them and skips conflict detection, so
	``force`` is ignored; a conflict without a resolution entry is forced.
	"""

	force: bool = Field(default=False, description="Overwrite conflicting holders. Ignored when resolutions are sent.")
	resolutions: list[ConflictResolution] | None = Field(
		default=None,
		description="Per-conflict force/keep decisions. When present, force is ignored and unlisted conflicts are forced.",
	)


class ConflictRead(BaseModel):
	parcel_id: str
	role: AssignmentRole
	current_farmer_id: uuid.UUID
	current_farmer_name: str | None = None
	attempted_farmer_id: uuid.UUID
	attempted_farmer_name: str


class AssignmentPlanRead(BaseModel):
	owner_removals: list[str] = Field(default_factory=list)
	cultivator_removals: list[str] = Field(default_factory=list)
	owner_grants: list[str] = Field(default_factory=list)
	cultivator_grants: list[str] = Field(default_factory=list)


class AssignmentPreview(BaseModel):
	farmer_id: uuid.UUID
	village: str
	conflicts: list[ConflictRead] = Field(default_factory=list)
	plan: AssignmentPlanRead


class AssignmentResult(BaseModel):
	farmer_id: uuid.UUID
	status: Literal["ok", "noop", "conflicts"]
	owned_parcel_ids: list[str] = Field(default_factory=list)
	cultivated_parcel_ids: list[str] = Field(default_factory=list)
	conflicts: list[ConflictRead] = Field(default_factory=list)
	plan: AssignmentPlanRead | None = None
	forced: bool = False
