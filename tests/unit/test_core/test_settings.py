import pytest
from core.settings import SamplerSettings


def test_defaults():
    settings = SamplerSettings()
    assert settings.concurrency == 4
    assert settings.nearby_threshold == 20.0
    assert settings.stability_cv_threshold == 0.05
    assert settings.cache_path is None
    settings.validate()


def test_round_trip_dict():
    settings = SamplerSettings(concurrency=2, grid_area_thresholds=((0.001, 5),))
    restored = SamplerSettings.from_dict(settings.to_dict())
    assert restored == settings


def test_from_env(monkeypatch):
    """Verify environment overrides."""
    monkeypatch.setenv("SOLAR_SAMPLER_DEBUG", "1")
    monkeypatch.setenv("SOLAR_SAMPLER_CACHE_PATH", "/tmp/samples.db")
    monkeypatch.setenv("SOLAR_SAMPLER_CONCURRENCY", "8")
    monkeypatch.setenv("SOLAR_SAMPLER_TIMEOUT", "2.5")

    settings = SamplerSettings.from_env()
    assert settings.debug is True
    assert settings.cache_path == "/tmp/samples.db"
    assert settings.concurrency == 8
    assert settings.request_timeout_seconds == 2.5


def test_validate_lists_errors():
    settings = SamplerSettings(concurrency=0, grid_base_resolution=9, request_timeout_seconds=0)
    with pytest.raises(ValueError) as exc:
        settings.validate()
    message = str(exc.value)
    assert "concurrency" in message
    assert "grid_max_resolution" in message
    assert "request_timeout_seconds" in message
