"""Tests for the filter module."""

from freematics_decoder.config import FilterConfig
from freematics_decoder.filter import RecordFilter
from freematics_decoder.models import PositionRecord


def _record(device_id: str = "dev-001", valid: bool = True) -> PositionRecord:
    """Build a minimal position record for filter tests."""
    return PositionRecord(device_id=device_id, valid=valid)


def test_default_config_passes_everything() -> None:
    f = RecordFilter(FilterConfig())
    assert f.apply(_record()) is not None
    assert f.apply(_record(valid=False)) is not None


def test_drop_invalid() -> None:
    """Records without a fix are dropped when ``drop_invalid`` is set."""
    f = RecordFilter(FilterConfig(drop_invalid=True))
    assert f.apply(_record(valid=False)) is None
    assert f.apply(_record(valid=True)) is not None


def test_drop_device_id() -> None:
    f = RecordFilter(FilterConfig(drop_device_ids=["noisy-99"]))
    assert f.apply(_record(device_id="noisy-99")) is None


def test_keep_device_ids_match() -> None:
    f = RecordFilter(FilterConfig(keep_device_ids=["dev-001", "dev-002"]))
    result = f.apply(_record(device_id="dev-001"))
    assert result is not None
    assert result.device_id == "dev-001"


def test_keep_device_ids_no_match() -> None:
    f = RecordFilter(FilterConfig(keep_device_ids=["dev-001", "dev-002"]))
    assert f.apply(_record(device_id="dev-999")) is None


def test_drop_wins_over_keep() -> None:
    f = RecordFilter(FilterConfig(keep_device_ids=["dev-001"], drop_device_ids=["dev-001"]))
    assert f.apply(_record(device_id="dev-001")) is None
