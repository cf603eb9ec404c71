"""Tests for configuration validation."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from orbitrisk.core.errors import ConfigurationError, OrbitRiskError, TimeWindowInvalid
from orbitrisk.utils.config import (
    ScreeningConfig,
    as_utc,
    require_positive,
    require_positive_int,
    validate_window,
)


class TestScreeningConfig:
    def test_defaults(self) -> None:
        config = ScreeningConfig()
        assert config.sample_count == 500
        assert config.threshold_km == 1.0
        assert config.shape_threshold_km == 3.0
        assert config.step_minutes == 10.0
        assert config.validity_days == 14.0
        assert (config.moderate_percent, config.high_percent) == (1.0, 5.0)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("sample_count", 0),
            ("sample_count", 10.5),
            ("threshold_km", 0.0),
            ("threshold_km", -1.0),
            ("shape_threshold_km", float("nan")),
            ("step_minutes", 0),
            ("validity_days", -14.0),
            ("moderate_percent", 0.0),
            ("segment_interval_days", "3"),
        ],
    )
    def test_rejects_out_of_range(self, field, value) -> None:
        with pytest.raises(ConfigurationError, match=field):
            ScreeningConfig(**{field: value})

    def test_cutoffs_ordered(self) -> None:
        with pytest.raises(ConfigurationError, match="moderate_percent"):
            ScreeningConfig(moderate_percent=6.0, high_percent=5.0)

    def test_replace_revalidates(self) -> None:
        config = ScreeningConfig().replace(threshold_km=2.5)
        assert config.threshold_km == 2.5
        with pytest.raises(ConfigurationError):
            config.replace(step_minutes=-1.0)

    def test_frozen(self) -> None:
        with pytest.raises(AttributeError):
            ScreeningConfig().threshold_km = 5.0


class TestValidators:
    def test_require_positive(self) -> None:
        assert require_positive("x", 2) == 2
        for bad in (0, -1.0, float("inf"), True, None):
            with pytest.raises(ConfigurationError):
                require_positive("x", bad)

    def test_require_positive_int(self) -> None:
        assert require_positive_int("n", 3) == 3
        with pytest.raises(ConfigurationError):
            require_positive_int("n", 3.0)

    def test_errors_share_base(self) -> None:
        with pytest.raises(OrbitRiskError):
            require_positive("x", 0)


class TestTimeWindow:
    def test_as_utc(self) -> None:
        assert as_utc(datetime(2024, 1, 1)).tzinfo == timezone.utc
        aware = datetime(2024, 1, 1, tzinfo=timezone(timedelta(hours=2)))
        assert as_utc(aware) is aware

    def test_valid_window(self) -> None:
        start = datetime(2024, 1, 1)
        s, e = validate_window(start, start + timedelta(seconds=1))
        assert e - s == timedelta(seconds=1)

    @pytest.mark.parametrize("delta", [timedelta(0), timedelta(days=-1)])
    def test_empty_window(self, delta) -> None:
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(TimeWindowInvalid, match="strictly after"):
            validate_window(start, start + delta)
