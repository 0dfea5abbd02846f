import pytest
import requests
from unittest.mock import MagicMock, patch
from core.errors import ConversionFailed
from core.models import GeographicPoint, ProjectedPoint
from loaders.reframe import CoordinateTransformer

POINT = GeographicPoint(46.5198, 6.632)


@pytest.fixture
def mock_loader():
    with patch('requests.Session') as mock_session:
        loader = CoordinateTransformer()
        loader.session = mock_session.return_value
        yield loader


def ok_response(easting, northing):
    response = MagicMock()
    response.json.return_value = {"easting": easting, "northing": northing}
    return response


def error_response(status):
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError(f"{status} Server Error")
    return response


def test_project_primary(mock_loader):
    """Verify a successful primary conversion."""
    mock_loader.session.get.return_value = ok_response("2538000.5", "1152000.25")

    result = mock_loader.project(POINT)

    assert result == ProjectedPoint(2538000.5, 1152000.25)
    assert mock_loader.session.get.call_count == 1
    url = mock_loader.session.get.call_args.args[0]
    params = mock_loader.session.get.call_args.kwargs["params"]
    assert url == mock_loader.settings.reframe_url
    assert params["easting"] == 6.632
    assert params["northing"] == 46.5198
    assert mock_loader.session.get.call_args.kwargs["timeout"] == 10.0


def test_fallback_on_error_status(mock_loader):
    """Verify the alternate endpoint is tried once after a bad status."""
    mock_loader.session.get.side_effect = [error_response(502), ok_response(2538001, 1152001)]

    result = mock_loader.project(POINT)

    assert result == ProjectedPoint(2538001.0, 1152001.0)
    assert mock_loader.session.get.call_count == 2
    assert mock_loader.session.get.call_args.args[0] == mock_loader.settings.reframe_fallback_url


def test_fallback_on_unreachable_primary(mock_loader):
    mock_loader.session.get.side_effect = [
        requests.ConnectionError("refused"),
        ok_response(2538001, 1152001),
    ]
    assert mock_loader.project(POINT) == ProjectedPoint(2538001.0, 1152001.0)


def test_fallback_on_malformed_payload(mock_loader):
    bad = MagicMock()
    bad.json.return_value = {"unexpected": True}
    mock_loader.session.get.side_effect = [bad, ok_response(1, 2)]
    assert mock_loader.project(POINT) == ProjectedPoint(1.0, 2.0)


def test_both_endpoints_fail(mock_loader):
    """Verify ConversionFailed after exactly two attempts."""
    mock_loader.session.get.side_effect = [error_response(500), error_response(503)]

    with pytest.raises(ConversionFailed):
        mock_loader.project(POINT)
    assert mock_loader.session.get.call_count == 2


def test_project_many_keeps_order(mock_loader):
    mock_loader.session.get.side_effect = [ok_response(1, 2), ok_response(3, 4)]
    result = mock_loader.project_many([POINT, GeographicPoint(46.6, 6.7)])
    assert result == [ProjectedPoint(1.0, 2.0), ProjectedPoint(3.0, 4.0)]
