from __future__ import annotations

import math

import pytest

from app.errors import ValidationError
from app.services.geometry import bbox_intersects, parse_polygon_wkt, ring_bbox, validate_ring
from app.services.projection import get_transformer, reproject_ring


def test_parse_polygon_wkt_returns_exterior_ring() -> None:
    ring = parse_polygon_wkt("POLYGON((0 0, 10 0, 10 10, 0 10, 0 0))")
    assert ring == [[0.0, 0.0], [10.0, 0.0], [10.0, 10.0], [0.0, 10.0], [0.0, 0.0]]


@pytest.mark.parametrize(
    "text",
    ["", "   ", "POLYGON((0 0, 1 1", "LINESTRING(0 0, 1 1)", "not a polygon"],
)
def test_parse_polygon_wkt_rejects_bad_input(text: str) -> None:
    with pytest.raises(ValidationError):
        parse_polygon_wkt(text)


def test_validate_ring_closes_and_collapses_duplicates() -> None:
    ring = validate_ring([[0, 0], [0, 0], [1, 0], [1, 1], [1, 1]])
    assert ring == [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 0.0]]


def test_validate_ring_keeps_already_closed_ring() -> None:
    ring = validate_ring([[0, 0], [1, 0], [1, 1], [0, 0]])
    assert ring == [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 0.0]]


@pytest.mark.parametrize(
    "points",
    [
        [[0, 0], [1, 1]],
        [[0, 0], [1, 0], [0, 0], [1, 0]],
        [[0, 0], [0, 0], [0, 0], [0, 0]],
        [[0, 0], [1, 0], [0, 0]],
        [[0, 0], [1, math.nan], [1, 1]],
        [[0, 0], [1, math.inf], [1, 1]],
        [[0, 0], ["1", 0], [1, 1]],
        [[0, 0, 0], [1, 0, 0], [1, 1, 0]],
        "POLYGON((0 0, 1 0, 1 1, 0 0))",
    ],
)
def test_validate_ring_rejects_degenerate_rings(points: object) -> None:
    with pytest.raises(ValidationError):
        validate_ring(points)  # type: ignore[arg-type]


def test_bbox_helpers() -> None:
    box = ring_bbox([[1.0, 2.0], [3.0, -1.0], [2.0, 5.0], [1.0, 2.0]])
    assert box == (1.0, -1.0, 3.0, 5.0)
    assert bbox_intersects(box, (2.5, 4.0, 10.0, 10.0))
    assert bbox_intersects(box, (3.0, 5.0, 4.0, 6.0))
    assert not bbox_intersects(box, (3.1, 0.0, 4.0, 1.0))


def test_reproject_web_mercator_origin_and_one_degree() -> None:
    transformer = get_transformer("EPSG:3857", "EPSG:4326")
    ring = reproject_ring([[0.0, 0.0], [111319.49079327357, 0.0]], transformer)

    assert ring[0] == pytest.approx([0.0, 0.0], abs=1e-9)
    assert ring[1][0] == pytest.approx(1.0, abs=1e-9)
    assert ring[1][1] == pytest.approx(0.0, abs=1e-9)


def test_reproject_stereo70_lands_in_romania() -> None:
    transformer = get_transformer("EPSG:3844", "EPSG:4326")
    lon, lat = reproject_ring([[500000.0, 500000.0]], transformer)[0]

    assert 20.0 < lon < 30.0
    assert 43.0 < lat < 49.0


def test_reproject_non_finite_output_is_a_validation_error() -> None:
    class _Broken:
        def transform(self, xx, yy):  # type: ignore[no-untyped-def]
            return [math.inf for _ in xx], list(yy)

    with pytest.raises(ValidationError):
        reproject_ring([[0.0, 0.0], [1.0, 1.0], [2.0, 0.0]], _Broken())


def test_transformer_is_cached() -> None:
    assert get_transformer("EPSG:3857", "EPSG:4326") is get_transformer("EPSG:3857", "EPSG:4326")
