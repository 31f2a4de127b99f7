"""Polygon ring parsing, validation and bounding boxes."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from shapely import wkt
from shapely.errors import ShapelyError
from shapely.geometry import Polygon

from app.errors import ValidationError

BBox = tuple[float, float, float, float]


def _is_number(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_polygon_wkt(text: str) -> list[list[float]]:
	"""Parse ``POLYGON((X Y, X Y, ...))`` into its exterior ring."""
	if not isinstance(text, str) or not text.strip():
		raise ValidationError("polygon is missing")
	try:
		geom = wkt.loads(text.strip())
	except ShapelyError as exc:
		raise ValidationError(f"polygon is not valid WKT: {exc}") from exc
	if geom.geom_type != "Polygon" or geom.is_empty:
		raise ValidationError(f"expected a POLYGON, got {geom.geom_type.upper()}")
	return [[float(pt[0]), float(pt[1])] for pt in geom.exterior.coords]


def validate_ring(points: Sequence[Any]) -> list[list[float]]:
	"""Validate a coordinate ring and return it closed, with consecutive duplicates removed.

	Raises ``ValidationError`` when a vertex is not a pair of finite numbers or
	when fewer than three distinct vertices remain.
	"""
	if not isinstance(points, Sequence) or isinstance(points, str):
		raise ValidationError("polygon ring must be a list of coordinate pairs")

	ring: list[list[float]] = []
	for idx, vertex in enumerate(points):
		if (
			not isinstance(vertex, Sequence)
			or isinstance(vertex, str)
			or len(vertex) != 2
			or not all(_is_number(v) and math.isfinite(v) for v in vertex)
		):
			raise ValidationError(f"vertex {idx} is not a finite coordinate pair")
		pair = [float(vertex[0]), float(vertex[1])]
		if ring and ring[-1] == pair:
			continue
		ring.append(pair)

	if len(ring) > 1 and ring[0] == ring[-1]:
		ring.pop()
	if len(ring) < 3 or len({tuple(pt) for pt in ring}) < 3:
		raise ValidationError("polygon ring has fewer than 3 distinct vertices")

	ring.append(list(ring[0]))
	return ring


def ring_bbox(ring: Sequence[Sequence[float]]) -> BBox:
	"""Return ``(min_lon, min_lat, max_lon, max_lat)``."""
	lons = [pt[0] for pt in ring]
	lats = [pt[1] for pt in ring]
	return min(lons), min(lats), max(lons), max(lats)


def bbox_intersects(a: BBox, b: BBox) -> bool:
	return a[0] <= b[2] and a[2] >= b[0] and a[1] <= b[3] and a[3] >= b[1]


def ring_to_polygon(ring: Sequence[Sequence[float]]) -> Polygon:
	return Polygon([(pt[0], pt[1]) for pt in ring])
