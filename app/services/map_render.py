"""Zoom-keyed level-of-detail rendering for village parcel maps.

Each call recomputes the render set from the stored rings: culling against
the viewport first, then optional Douglas-Peucker simplification.  Stored
coordinates are never modified; at full-detail zoom the stored ring objects
are returned as-is.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from shapely.errors import ShapelyError

from app.config import Settings
from app.services.geometry import BBox, bbox_intersects, ring_bbox, ring_to_polygon

EARTH_RADIUS_M = 6371e3


class RenderableParcel(Protocol):
	id: str
	coordinates: list[list[float]]
	owner_id: uuid.UUID | None


class LodLevel(StrEnum):
	hidden = "hidden"
	culled = "culled"
	simplified = "simplified"
	full_detail = "full_detail"


@dataclass(slots=True, frozen=True)
class Viewport:
	min_lon: float
	min_lat: float
	max_lon: float
	max_lat: float

	def as_bbox(self) -> BBox:
		return self.min_lon, self.min_lat, self.max_lon, self.max_lat


@dataclass(slots=True, frozen=True)
class LodThresholds:
	hide_individual: float = 11
	simplify_start: float = 13
	full_detail: float = 15
	low_detail_tolerance: float = 0.0005
	medium_detail_tolerance: float = 0.0001

	@classmethod
	def from_settings(cls, settings: Settings) -> LodThresholds:
		return cls(
			hide_individual=settings.map_zoom_hide_individual,
			simplify_start=settings.map_zoom_simplify_start,
			full_detail=settings.map_zoom_full_detail,
			low_detail_tolerance=settings.map_tolerance_low_detail,
			medium_detail_tolerance=settings.map_tolerance_medium_detail,
		)

	def level_for(self, zoom: float) -> LodLevel:
		if zoom < self.hide_individual:
			return LodLevel.hidden
		if zoom < self.simplify_start:
			return LodLevel.culled
		if zoom < self.full_detail:
			return LodLevel.simplified
		return LodLevel.full_detail

	def tolerance_for(self, zoom: float) -> float | None:
		if self.level_for(zoom) != LodLevel.simplified:
			return None
		midpoint = (self.simplify_start + self.full_detail) / 2
		return self.low_detail_tolerance if zoom < midpoint else self.medium_detail_tolerance


@dataclass(slots=True, frozen=True)
class ColorPolicy:
	unassigned: str = "hsl(0, 0%, 70%)"
	other_parcel: str = "hsl(0, 0%, 85%)"
	highlight: str = "hsl(var(--accent))"

	@classmethod
	def from_settings(cls, settings: Settings) -> ColorPolicy:
		return cls(
			unassigned=settings.map_color_unassigned,
			other_parcel=settings.map_color_other_parcel,
			highlight=settings.map_color_highlight,
		)


@dataclass(slots=True, frozen=True)
class RenderOptions:
	zoom: float
	viewport: Viewport
	highlight_farmer_id: uuid.UUID | None = None
	show_all_colors: bool = False
	selected_parcel_id: str | None = None


@dataclass(slots=True, frozen=True)
class ParcelStyle:
	color: str
	fill_color: str
	fill_opacity: float
	weight: int


@dataclass(slots=True, frozen=True)
class RenderedParcel:
	parcel_id: str
	owner_id: uuid.UUID | None
	ring: Sequence[Sequence[float]]
	simplified: bool
	style: ParcelStyle


@dataclass(slots=True, frozen=True)
class SegmentDimension:
	segment_index: int
	length_m: int
	mid_lon: float
	mid_lat: float


def simplify_ring(ring: Sequence[Sequence[float]], tolerance: float) -> Sequence[Sequence[float]]:
	"""Simplify a closed ring; fall back to the input when the result would degenerate."""
	if len(ring) < 4:
		return ring
	try:
		simplified = ring_to_polygon(ring).simplify(tolerance, preserve_topology=False)
	except ShapelyError:
		return ring
	if simplified.is_empty or simplified.geom_type != "Polygon":
		return ring
	coords = [[float(x), float(y)] for x, y in simplified.exterior.coords]
	if len(coords) < 4:
		return ring
	return coords


def parcel_style(
	owner_id: uuid.UUID | None,
	farmer_colors: Mapping[uuid.UUID, str | None],
	options: RenderOptions,
	policy: ColorPolicy,
	selected: bool = False,
) -> ParcelStyle:
	owner_color = farmer_colors.get(owner_id) if owner_id is not None else None
	fill_opacity = 0.6 if selected else 0.4

	if options.show_all_colors:
		color = owner_color or policy.unassigned
	elif options.highlight_farmer_id is not None:
		if owner_id == options.highlight_farmer_id:
			color = owner_color or policy.highlight
			fill_opacity = 0.7 if selected else 0.5
		else:
			color = policy.other_parcel
	else:
		color = owner_color or policy.unassigned

	return ParcelStyle(
		color=policy.highlight if selected else color,
		fill_color=color,
		fill_opacity=fill_opacity,
		weight=3 if selected else 2,
	)


def render_parcels(
	parcels: Iterable[RenderableParcel],
	farmer_colors: Mapping[uuid.UUID, str | None],
	options: RenderOptions,
	thresholds: LodThresholds | None = None,
	policy: ColorPolicy | None = None,
) -> list[RenderedParcel]:
	thresholds = thresholds or LodThresholds()
	policy = policy or ColorPolicy()

	level = thresholds.level_for(options.zoom)
	if level == LodLevel.hidden:
		return []

	view = options.viewport.as_bbox()
	tolerance = thresholds.tolerance_for(options.zoom)
	rendered: list[RenderedParcel] = []

	for parcel in parcels:
		ring = parcel.coordinates
		if not ring or len(ring) < 3:
			continue
		if not bbox_intersects(ring_bbox(ring), view):
			continue

		out_ring: Sequence[Sequence[float]] = ring
		if tolerance is not None:
			out_ring = simplify_ring(ring, tolerance)

		selected = parcel.id == options.selected_parcel_id
		rendered.append(
			RenderedParcel(
				parcel_id=parcel.id,
				owner_id=parcel.owner_id,
				ring=out_ring,
				simplified=out_ring is not ring,
				style=parcel_style(parcel.owner_id, farmer_colors, options, policy, selected),
			)
		)

	return rendered


def haversine_m(lon1: float, lat1: float, lon2: float, lat2: float) -> float:
	phi1 = math.radians(lat1)
	phi2 = math.radians(lat2)
	d_phi = math.radians(lat2 - lat1)
	d_lambda = math.radians(lon2 - lon1)
	a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
	return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def segment_lengths(ring: Sequence[Sequence[float]]) -> list[SegmentDimension]:
	"""Edge lengths in whole metres with midpoints, for the selected-parcel overlay."""
	dims: list[SegmentDimension] = []
	for idx in range(len(ring) - 1):
		(lon1, lat1), (lon2, lat2) = ring[idx][:2], ring[idx + 1][:2]
		dims.append(
			SegmentDimension(
				segment_index=idx + 1,
				length_m=round(haversine_m(lon1, lat1, lon2, lat2)),
				mid_lon=(lon1 + lon2) / 2,
				mid_lat=(lat1 + lat2) / 2,
			)
		)
	return dims


def fit_bounds(
	parcels: Sequence[RenderableParcel],
	highlight_farmer_id: uuid.UUID | None = None,
	show_all_colors: bool = False,
	limit: int = 100,
) -> BBox | None:
	"""Initial map bounds: the highlighted farmer's parcels, else the first ``limit`` parcels."""
	subset: Sequence[Any] = parcels[:limit]
	if highlight_farmer_id is not None and not show_all_colors:
		owned = [p for p in parcels if p.owner_id == highlight_farmer_id]
		subset = owned or parcels[: max(1, limit // 2)]

	boxes = [ring_bbox(p.coordinates) for p in subset if p.coordinates and len(p.coordinates) >= 3]
	if not boxes:
		return None
	return (
		min(b[0] for b in boxes),
		min(b[1] for b in boxes),
		max(b[2] for b in boxes),
		max(b[3] for b in boxes),
	)
