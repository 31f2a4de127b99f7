"""Pydantic request/response schemas for parcels, ingestion and map rendering."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ParcelRowIn(BaseModel):
	"""One raw ingestion row.  Field values are checked by the ingest service, row by row."""

	parcel_id: Any = None
	village: Any = None
	area_hectares: Any = None
	projected_polygon: Any = None


class ParcelBatchRequest(BaseModel):
	rows: list[ParcelRowIn] = Field(default_factory=list)


class BatchError(BaseModel):
	id: str | None
	error: str


class BatchResult(BaseModel):
	processed_count: int
	failed_count: int
	errors: list[BatchError] = Field(default_factory=list)


class ParcelRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: str
	village: str
	area: float
	coordinates: list[list[float]]
	owner_id: uuid.UUID | None = None
	cultivator_id: uuid.UUID | None = None
	created_at: datetime
	updated_at: datetime


class ParcelStyleRead(BaseModel):
	color: str
	fill_color: str
	fill_opacity: float
	weight: int


class RenderedParcelRead(BaseModel):
	parcel_id: str
	owner_id: uuid.UUID | None = None
	ring: list[list[float]]
	simplified: bool
	style: ParcelStyleRead


class SegmentDimensionRead(BaseModel):
	segment_index: int
	length_m: int
	mid_lon: float
	mid_lat: float


class MapRender(BaseModel):
	village: str
	zoom: float
	lod: str
	tolerance: float | None = None
	parcels: list[RenderedParcelRead] = Field(default_factory=list)
	fit_bounds: list[float] | None = None
	selected_dimensions: list[SegmentDimensionRead] = Field(default_factory=list)
