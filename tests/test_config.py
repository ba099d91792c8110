from dataclasses import replace

import pytest

from bazi_match.config import DEFAULT_CONFIG, EngineConfig
from bazi_match.errors import ValidationError


def test_defaults():
    assert DEFAULT_CONFIG.hidden_stem_weights == (0.6, 0.3, 0.1)
    assert DEFAULT_CONFIG.start_age_strategy == "solar_term"
    assert (DEFAULT_CONFIG.min_year, DEFAULT_CONFIG.max_year) == (1900, 2100)


def test_from_env(monkeypatch):
    monkeypatch.setenv("BAZI_START_AGE_STRATEGY", "fixed")
    monkeypatch.setenv("BAZI_DECADE_COUNT", "10")
    monkeypatch.setenv("BAZI_UTC_OFFSET_HOURS", "9")
    config = EngineConfig.from_env()
    assert config.start_age_strategy == "fixed"
    assert config.decade_count == 10
    assert config.utc_offset_hours == 9.0
    assert config.max_candidates == DEFAULT_CONFIG.max_candidates


def test_from_env_unset_keeps_defaults(monkeypatch):
    for name in ("START_AGE_STRATEGY", "DECADE_COUNT", "UTC_OFFSET_HOURS", "FIXED_START_AGE",
                 "ANNUAL_END_AGE", "MAX_CANDIDATES"):
        monkeypatch.delenv("BAZI_" + name, raising=False)
    assert EngineConfig.from_env() == DEFAULT_CONFIG


def test_from_env_bad_number(monkeypatch):
    monkeypatch.setenv("BAZI_DECADE_COUNT", "ten")
    with pytest.raises(ValidationError) as exc:
        EngineConfig.from_env()
    assert exc.value.field == "BAZI_DECADE_COUNT"


def test_from_env_unknown_strategy(monkeypatch):
    monkeypatch.setenv("BAZI_START_AGE_STRATEGY", "lunar")
    with pytest.raises(ValidationError) as exc:
        EngineConfig.from_env()
    assert exc.value.field == "start_age_strategy"


@pytest.mark.parametrize("changes, field", [
    ({"min_year": 2200}, "min_year"),
    ({"medium_threshold": 0.3}, "strong_threshold"),
    ({"decade_count": 0}, "decade_count"),
    ({"max_candidates": -1}, "max_candidates"),
])
def test_invalid_values(changes, field):
    with pytest.raises(ValidationError) as exc:
        replace(DEFAULT_CONFIG, **changes)
    assert exc.value.field == field
