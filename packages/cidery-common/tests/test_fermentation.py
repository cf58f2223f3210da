"""
Tests for fermentation progress and ABV calculations.
"""

from datetime import datetime, timedelta

import pytest
from cidery_common.exceptions import ValidationError
from cidery_common.fermentation import (
    AlertPriority,
    FermentationStage,
    StallSettings,
    alert_priority,
    analyze_fermentation,
    brix_to_sg,
    calculate_abv,
    calculate_attenuation,
    calculate_potential_abv,
    detect_stall,
    determine_stage,
    is_terminal_confirmed,
    percent_fermented,
)
from cidery_common.models import Measurement, MeasurementMethod

START = datetime(2024, 10, 1, 9, 0)


def reading(days: float, sg: float, method: MeasurementMethod | None = None) -> Measurement:
    return Measurement(
        measurement_date=START + timedelta(days=days),
        specific_gravity=sg,
        method=method,
    )


class TestAbv:
    """Tests for ABV and gravity helpers."""

    def test_abv(self):
        assert calculate_abv(1.050, 1.000) == 6.56

    def test_abv_equal_gravities(self):
        assert calculate_abv(1.010, 1.010) == 0.0

    def test_fg_above_og(self):
        with pytest.raises(ValidationError, match="greater than or equal"):
            calculate_abv(1.000, 1.050)

    def test_out_of_range(self):
        with pytest.raises(ValidationError, match="between"):
            calculate_abv(1.300, 1.000)

    def test_non_positive(self):
        with pytest.raises(ValidationError, match="positive"):
            calculate_abv(0, 1.000)

    def test_potential_abv(self):
        assert calculate_potential_abv(1.040) == 5.25

    def test_brix_to_sg(self):
        assert brix_to_sg(0) == 1.0
        assert brix_to_sg(12.0) == pytest.approx(1.048, abs=0.001)

    def test_attenuation(self):
        assert calculate_attenuation(1.050, 1.000) == 100.0


class TestProgress:
    """Tests for percent fermented and stage mapping."""

    def test_percent_fermented(self):
        assert percent_fermented(1.050, 1.020, 0.998) == 57.7

    def test_gravity_above_og(self):
        assert percent_fermented(1.050, 1.060, 0.998) == 0.0

    @pytest.mark.parametrize(
        "percent,stage",
        [
            (-1, FermentationStage.UNKNOWN),
            (0, FermentationStage.EARLY),
            (69.9, FermentationStage.EARLY),
            (70, FermentationStage.MID),
            (90, FermentationStage.APPROACHING_DRY),
            (98, FermentationStage.TERMINAL),
            (104, FermentationStage.TERMINAL),
        ],
    )
    def test_stage(self, percent, stage):
        assert determine_stage(percent) == stage


class TestStallAndTerminal:
    """Tests for stall detection and terminal confirmation."""

    def test_stall(self):
        assert detect_stall([reading(0, 1.010), reading(4, 1.0095)])

    def test_no_stall_when_readings_close_in_time(self):
        assert not detect_stall([reading(0, 1.010), reading(2, 1.0095)])

    def test_no_stall_when_still_dropping(self):
        assert not detect_stall([reading(0, 1.020), reading(4, 1.010)])

    def test_stall_disabled(self):
        assert not detect_stall(
            [reading(0, 1.010), reading(4, 1.010)], StallSettings(enabled=False)
        )

    def test_terminal_confirmed(self):
        assert is_terminal_confirmed([reading(0, 0.998), reading(3, 0.998)])

    def test_terminal_too_soon(self):
        assert not is_terminal_confirmed([reading(0, 0.998), reading(1, 0.998)])

    def test_refractometer_readings_ignored(self):
        readings = [reading(0, 0.998), reading(3, 0.998, MeasurementMethod.REFRACTOMETER)]
        assert not is_terminal_confirmed(readings)


class TestAnalyzeFermentation:
    """Tests for the full fermentation analysis."""

    def test_missing_inputs(self):
        progress = analyze_fermentation(None, 0.998, [], now=START)
        assert progress.stage == FermentationStage.UNKNOWN
        assert "Record OG" in progress.recommended_action
        assert alert_priority(progress) == AlertPriority.MEDIUM

    def test_active_fermentation(self):
        progress = analyze_fermentation(
            1.050,
            0.998,
            [reading(0, 1.050), reading(5, 1.020)],
            now=START + timedelta(days=6),
        )
        assert progress.percent_fermented == 57.7
        assert progress.stage == FermentationStage.EARLY
        assert not progress.is_stalled
        assert progress.days_since_last_measurement == 1
        assert progress.next_measurement_due == START + timedelta(days=7)
        assert progress.recommended_action == "Next measurement in 1 day(s)"
        assert alert_priority(progress) == AlertPriority.LOW

    def test_stalled(self):
        progress = analyze_fermentation(
            1.050,
            0.998,
            [reading(0, 1.010), reading(4, 1.0095)],
            now=START + timedelta(days=4),
        )
        assert progress.stage == FermentationStage.MID
        assert progress.is_stalled
        assert "stalled" in progress.recommended_action
        assert alert_priority(progress) == AlertPriority.HIGH

    def test_terminal_unconfirmed(self):
        progress = analyze_fermentation(
            1.050,
            0.998,
            [reading(0, 1.000), reading(1, 0.998)],
            now=START + timedelta(days=1),
        )
        assert progress.stage == FermentationStage.TERMINAL
        assert not progress.is_terminal_confirmed
        assert "confirm terminal" in progress.recommended_action

    def test_terminal_confirmed_needs_no_alert(self):
        progress = analyze_fermentation(
            1.050,
            0.998,
            [reading(0, 0.998), reading(3, 0.998)],
            now=START + timedelta(days=3),
        )
        assert progress.is_terminal_confirmed
        assert alert_priority(progress) is None

    def test_overdue_measurement(self):
        progress = analyze_fermentation(
            1.050,
            0.998,
            [reading(0, 1.050), reading(1, 1.030)],
            now=START + timedelta(days=6),
        )
        assert progress.recommended_action.startswith("Measurement due")
        assert alert_priority(progress) == AlertPriority.HIGH
