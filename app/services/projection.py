"""Reprojection of parcel rings from the local projected CRS to WGS84 via pyproj."""

from __future__ import annotations

import math
from collections.abc import Sequence
from functools import lru_cache
from typing import Protocol

from pyproj import Transformer
from pyproj.exceptions import ProjError

from app.errors import ValidationError


class RingTransformer(Protocol):
	def transform(self, xx: Sequence[float], yy: Sequence[float]) -> tuple[Sequence[float], Sequence[float]]: ...


@lru_cache(maxsize=8)
def get_transformer(source_crs: str, target_crs: str = "EPSG:4326") -> Transformer:
	"""Cached transformer; ``always_xy`` keeps (x, y) -> (lon, lat) ordering."""
	return Transformer.from_crs(source_crs, target_crs, always_xy=True)


def reproject_ring(ring: Sequence[Sequence[float]], transformer: RingTransformer) -> list[list[float]]:
	xs = [float(pt[0]) for pt in ring]
	ys = [float(pt[1]) for pt in ring]
	try:
		lons, lats = transformer.transform(xs, ys)
	except ProjError as exc:
		raise ValidationError(f"polygon could not be reprojected: {exc}") from exc

	out = [[float(lon), float(lat)] for lon, lat in zip(lons, lats)]
	if not all(math.isfinite(v) for pt in out for v in pt):
		raise ValidationError("polygon is outside the source projection's valid area")
	return out
