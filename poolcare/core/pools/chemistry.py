"""
Chemical reading classification.

Bands drive display styling only; nothing here writes anywhere.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .models import Pool


class SeverityBand(Enum):
    GOOD = "good"
    WARNING = "warning"
    DANGER = "danger"
    NEUTRAL = "neutral"  # no reading, or a parameter we don't grade


class ChemicalParameter(Enum):
    PH = "ph"
    CHLORINE = "chlorine"
    ALKALINITY = "alkalinity"
    CALCIUM_HARDNESS = "calcium_hardness"


@dataclass(frozen=True)
class ReadingRange:
    """Inclusive acceptable ranges for one parameter."""
    good: tuple[float, float]
    warning: tuple[float, float]

    def classify(self, value: float) -> SeverityBand:
        if self.good[0] <= value <= self.good[1]:
            return SeverityBand.GOOD
        if self.warning[0] <= value <= self.warning[1]:
            return SeverityBand.WARNING
        return SeverityBand.DANGER


THRESHOLDS: dict[ChemicalParameter, ReadingRange] = {
    ChemicalParameter.PH: ReadingRange(good=(7.2, 7.6), warning=(7.0, 7.8)),
    ChemicalParameter.CHLORINE: ReadingRange(good=(1.0, 3.0), warning=(0.5, 4.0)),
    ChemicalParameter.ALKALINITY: ReadingRange(good=(80, 120), warning=(60, 150)),
    ChemicalParameter.CALCIUM_HARDNESS: ReadingRange(good=(200, 400), warning=(150, 500)),
}


def classify_reading(
    parameter: Union[ChemicalParameter, str],
    value: Optional[float],
) -> SeverityBand:
    """
    Grade a single chemical reading.

    Accepts the parameter as an enum member or its string name so that
    form field names can be passed straight through.
    """
    if value is None:
        return SeverityBand.NEUTRAL

    if not isinstance(parameter, ChemicalParameter):
        try:
            parameter = ChemicalParameter(parameter)
        except ValueError:
            return SeverityBand.NEUTRAL

    return THRESHOLDS[parameter].classify(value)


def classify_pool(pool: Pool) -> dict[str, SeverityBand]:
    """Band every graded reading on a pool, keyed by parameter name."""
    return {
        parameter.value: classify_reading(parameter, getattr(pool, parameter.value))
        for parameter in ChemicalParameter
    }
