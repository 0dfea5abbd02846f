import json
import pytest
import requests
from unittest.mock import MagicMock, patch
from core.errors import ConversionFailed, LookupFailed
from core.models import Polygon, ProjectedPoint
from loaders.identify import SpatialFeatureLookup

PROJECTED = ProjectedPoint(2538000.0, 1152000.0)


@pytest.fixture
def mock_loader():
    with patch('requests.Session') as mock_session:
        loader = SpatialFeatureLookup()
        loader.session = mock_session.return_value
        yield loader


def respond(mock_loader, payload):
    response = MagicMock()
    response.json.return_value = payload
    mock_loader.session.get.return_value = response
    return response


def test_lookup_at_point(mock_loader):
    """Verify point identify parameters and candidate parsing."""
    respond(mock_loader, {"results": [
        {"attributes": {"building_id": 1, "flaeche": 40}, "geometry": {"x": 1.0, "y": 2.0}},
        {"attributes": {"building_id": 2, "flaeche": 60}},
    ]})

    candidates = mock_loader.lookup_at_point(PROJECTED)

    assert len(candidates) == 2
    assert candidates[0].area == 40
    assert candidates[0].geometry == {"x": 1.0, "y": 2.0}
    assert candidates[1].geometry is None

    params = mock_loader.session.get.call_args.kwargs["params"]
    assert params["geometryType"] == "esriGeometryPoint"
    assert params["geometry"] == "2538000.0,1152000.0"
    assert params["mapExtent"] == "2537900.0,1151900.0,2538100.0,1152100.0"
    assert params["tolerance"] == 5
    assert params["returnGeometry"] == "true"
    assert params["layers"] == "all:ch.bfe.solarenergie-eignung-daecher"
    assert params["sr"] == "2056"


def test_empty_results(mock_loader):
    """Verify an empty answer is a valid, empty candidate list."""
    respond(mock_loader, {"results": []})
    assert mock_loader.lookup_at_point(PROJECTED) == []

    respond(mock_loader, {})
    assert mock_loader.lookup_at_point(PROJECTED) == []


def test_error_status_raises(mock_loader):
    """Verify a non-success status raises LookupFailed without retrying."""
    response = respond(mock_loader, {})
    response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

    with pytest.raises(LookupFailed):
        mock_loader.lookup_at_point(PROJECTED)
    assert mock_loader.session.get.call_count == 1


def test_undecodable_body_raises(mock_loader):
    response = respond(mock_loader, None)
    response.json.side_effect = ValueError("Expecting value")

    with pytest.raises(LookupFailed):
        mock_loader.lookup_at_point(PROJECTED)


def test_transport_error_retried_once(mock_loader):
    """Verify a dropped connection is retried before giving up."""
    with patch("tenacity.nap.time.sleep"):
        mock_loader.session.get.side_effect = requests.ConnectionError("reset")
        with pytest.raises(LookupFailed):
            mock_loader.lookup_at_point(PROJECTED)
    assert mock_loader.session.get.call_count == 2


def test_lookup_in_polygon(mock_loader):
    """Verify polygon identify projects vertices and omits geometry."""
    respond(mock_loader, {"results": [{"attributes": {"building_id": 9, "flaeche": 120}}]})
    transformer = MagicMock()
    transformer.project_many.return_value = [
        ProjectedPoint(1.0, 2.0), ProjectedPoint(3.0, 4.0), ProjectedPoint(5.0, 6.0),
    ]
    polygon = Polygon.coerce([(46.5, 6.6), (46.51, 6.6), (46.51, 6.61)])

    candidates = mock_loader.lookup_in_polygon(polygon, transformer)

    assert candidates[0].area == 120
    transformer.project_many.assert_called_once_with(polygon.vertices)
    params = mock_loader.session.get.call_args.kwargs["params"]
    assert params["geometryType"] == "esriGeometryPolygon"
    assert json.loads(params["geometry"]) == {"rings": [[[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]]]}
    assert params["returnGeometry"] == "false"
    assert params["tolerance"] == 0


def test_lookup_in_polygon_conversion_failure(mock_loader):
    transformer = MagicMock()
    transformer.project_many.side_effect = ConversionFailed("down")
    polygon = Polygon.coerce([(46.5, 6.6), (46.51, 6.6), (46.51, 6.61)])

    with pytest.raises(ConversionFailed):
        mock_loader.lookup_in_polygon(polygon, transformer)
    mock_loader.session.get.assert_not_called()


def test_malformed_records_are_skipped(mock_loader):
    """Verify records with unreadable attributes are dropped, the rest kept."""
    respond(mock_loader, {"results": [
        {"attributes": ["flaeche", 40]},
        "not a record",
        {"attributes": {"building_id": 2, "flaeche": 60}, "geometry": "POINT(1 2)"},
    ]})

    candidates = mock_loader.lookup_at_point(PROJECTED)

    assert len(candidates) == 1
    assert candidates[0].area == 60
    assert candidates[0].geometry is None
