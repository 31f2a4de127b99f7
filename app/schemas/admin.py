"""Pydantic schemas for audit log reads, site settings and statistics."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import LogTypeEnum

# ── Audit log ───────────────────────────────────────────────────────────────


class LogEntryRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: int
	type: LogTypeEnum
	actor: str
	action: str
	details: str
	timestamp: datetime


class ClearResult(BaseModel):
	status: str = "ok"
	deleted: dict[str, int] = Field(default_factory=dict)


# ── Settings ────────────────────────────────────────────────────────────────


class SiteNameRead(BaseModel):
	site_name: str


class SiteNameUpdate(BaseModel):
	site_name: str


# ── Statistics ──────────────────────────────────────────────────────────────


class VillageSummary(BaseModel):
	village: str
	parcel_count: int
	total_area: float
	farmer_count: int


class GlobalStats(BaseModel):
	villages: list[VillageSummary] = Field(default_factory=list)
	mayor_status_counts: dict[str, int] = Field(default_factory=dict)


class FarmerAreaStat(BaseModel):
	farmer_id: uuid.UUID
	name: str
	owned_area: float
	cultivated_area: float


class VillageStats(BaseModel):
	village: str
	parcel_count: int
	total_area: float
	assigned_count: int
	unassigned_count: int
	farmers: list[FarmerAreaStat] = Field(default_factory=list)
	size_distribution: dict[str, int] = Field(default_factory=dict)


class FarmerStats(BaseModel):
	farmer_id: uuid.UUID
	village: str
	owned_area: float
	cultivated_area: float
	owned_count: int
	cultivated_count: int
	village_average_owned_area: float
	village_average_cultivated_area: float
