import math
import pytest
from core.models import Candidate, ProjectedPoint
from core.selector import CandidateSelector, compute_centroid, dedup_key, deduplicate

QUERY = ProjectedPoint(2600000.0, 1200000.0)


def roof(area, distance=None, production=None, **attrs):
    """Candidate with a point geometry `distance` metres east of QUERY."""
    attrs["flaeche"] = area
    if production is not None:
        attrs["stromertrag"] = production
    geometry = None
    if distance is not None:
        geometry = {"x": QUERY.easting + distance, "y": QUERY.northing}
    return Candidate(attributes=attrs, geometry=geometry)


@pytest.fixture
def selector():
    return CandidateSelector()


def test_nearby_beats_larger(selector):
    """Verify a close roof wins over a larger, farther one."""
    a = roof(50, distance=5, building_id=1)
    b = roof(80, distance=30, building_id=2)
    assert selector.select([a, b], QUERY) is a


def test_largest_when_nothing_close(selector):
    """Verify the largest roof wins when none is within the threshold."""
    a = roof(50, distance=25, building_id=1)
    b = roof(80, distance=30, building_id=2)
    assert selector.select([a, b], QUERY) is b


def test_threshold_is_inclusive(selector):
    a = roof(50, distance=20, building_id=1)
    b = roof(80, distance=30, building_id=2)
    assert selector.select([a, b], QUERY) is a


def test_area_tie_broken_by_production(selector):
    a = roof(80, production=1000, building_id=1)
    b = roof(80, production=2000, building_id=2)
    assert selector.select([a, b], QUERY) is b


def test_without_query_point_largest_wins(selector):
    a = roof(50, distance=1, building_id=1)
    b = roof(80, distance=300, building_id=2)
    assert selector.select([a, b]) is b


def test_empty_input(selector):
    assert selector.select([], QUERY) is None


def test_duplicates_keep_larger_record():
    """Verify one representative per building, the larger one."""
    small = roof(40, building_id=7)
    large = roof(60, building_id=7)
    other = roof(10, building_id=8)

    reps = deduplicate([small, large, other])
    assert reps == [large, other]


def test_duplicates_tie_keeps_first():
    first = roof(40, production=100, building_id=7)
    second = roof(40, production=100, building_id=7)
    assert deduplicate([first, second])[0] is first


def test_dedup_key_priority():
    """Verify identity keys are taken in priority order."""
    assert dedup_key({"building_id": 3, "objectid": 4, "label": "x"}) == 3
    assert dedup_key({"objectid": 4, "id": 5}) == 4
    assert dedup_key({"id": 5, "label": "x"}) == 5
    assert dedup_key({"label": "x"}) == "x"
    assert dedup_key({"flaeche": 1, "gstrahlung": 2}) == dedup_key({"gstrahlung": 2, "flaeche": 1})


def test_centroid_of_ring_is_vertex_mean():
    """Verify ring centroids are plain vertex means."""
    ring = {"rings": [[[0, 0], [4, 0], [4, 2], [0, 2]]]}
    assert compute_centroid(ring) == ProjectedPoint(2.0, 1.0)


def test_centroid_of_point_and_missing_geometry():
    assert compute_centroid({"x": 1.5, "y": 2.5}) == ProjectedPoint(1.5, 2.5)
    assert compute_centroid({"points": [[3, 4]]}) == ProjectedPoint(3.0, 4.0)
    assert compute_centroid(None) is None
    assert compute_centroid({"rings": []}) is None


def test_missing_geometry_is_infinitely_far(selector):
    """Verify candidates without geometry never count as nearby."""
    a = roof(50, building_id=1)
    b = roof(80, distance=100, building_id=2)
    ranked = selector.ranked([a, b], QUERY)

    assert math.isinf(a.distance)
    assert ranked[0] is b
    assert selector.select([a, b], QUERY) is b


def test_ring_geometry_distance(selector):
    near_ring = Candidate(
        attributes={"flaeche": 10, "building_id": 1},
        geometry={"rings": [[
            [QUERY.easting - 5, QUERY.northing - 5],
            [QUERY.easting + 5, QUERY.northing - 5],
            [QUERY.easting + 5, QUERY.northing + 5],
            [QUERY.easting - 5, QUERY.northing + 5],
        ]]},
    )
    big = roof(500, distance=60, building_id=2)
    assert selector.select([big, near_ring], QUERY) is near_ring
    assert near_ring.distance == pytest.approx(0.0)


def test_centroid_of_unreadable_geometry():
    assert compute_centroid("POINT(1 2)") is None
    assert compute_centroid({"rings": ["bad"]}) is None
    assert compute_centroid({"points": [None]}) is None


def test_from_result_drops_non_mapping_geometry():
    candidate = Candidate.from_result({"attributes": {"building_id": 1}, "geometry": "POINT(1 2)"})
    assert candidate.geometry is None
    with pytest.raises(ValueError):
        Candidate.from_result({"attributes": ["flaeche", 40]})


def test_dedup_key_custom_order():
    attrs = {"objectid": 7, "label": "Roof A"}
    assert dedup_key(attrs) == 7
    assert dedup_key(attrs, ("label", "objectid")) == "Roof A"
