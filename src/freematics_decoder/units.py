"""Unit conversions used by the position decoder."""

KNOTS_TO_KPH = 1.852


def knots_from_kph(value: float) -> float:
    """Convert a speed in km/h to knots."""
    return value / KNOTS_TO_KPH
