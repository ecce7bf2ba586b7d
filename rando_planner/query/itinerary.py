"""Itinerary aggregate: ordered legs, chosen stations, totals and validation.

Mutations never check continuity; an itinerary may be temporarily invalid
while the user is still building it.  Totals and the validation result are
derived state, only ever produced by ``recompute_derived()`` at the end of
each handler.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from rando_planner.models import Leg, LegType, Station, ValidationResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------

def total_distance(legs: Sequence[Leg]) -> Optional[float]:
    """Sum of leg distances; None when there are no legs or the sum is 0."""
    if not legs:
        return None
    distance = sum(leg.distance or 0 for leg in legs)
    return distance if distance > 0 else None


def total_time(legs: Sequence[Leg]) -> Optional[float]:
    """Sum of leg times in minutes; None when there are no legs or the sum is 0."""
    if not legs:
        return None
    minutes = sum(leg.estimated_time or 0 for leg in legs)
    return minutes if minutes > 0 else None


def validate_itinerary(itinerary: Itinerary) -> ValidationResult:
    """Check the itinerary for coherence; the first failing rule wins.

    Never raises: an unexpected error is reported as an invalid result.
    """
    try:
        return _check_rules(itinerary.start, itinerary.end, itinerary.legs)
    except Exception as exc:
        logger.error("Error validating itinerary: %s", exc)
        return ValidationResult(valid=False, error=str(exc) or "Unknown validation error occurred")


def _check_rules(
    start: Optional[Station],
    end: Optional[Station],
    legs: Sequence[Leg],
) -> ValidationResult:
    if not legs:
        return ValidationResult(valid=True)

    for i in range(len(legs) - 1):
        current, following = legs[i], legs[i + 1]
        if current.to_station.id != following.from_station.id:
            return ValidationResult(
                valid=False,
                error=(
                    f"Discontinuity detected: Leg {i + 1} ends at {current.to_station.label} "
                    f"but leg {i + 2} starts at {following.from_station.label}"
                ),
            )

    first, last = legs[0], legs[-1]
    if start is not None and start.id != first.from_station.id:
        return ValidationResult(
            valid=False,
            error=(
                f"Start station ({start.label}) doesn't match the first leg's "
                f"starting point ({first.from_station.label})"
            ),
        )

    if end is not None and end.id != last.to_station.id:
        return ValidationResult(
            valid=False,
            error=(
                f"End station ({end.label}) doesn't match the last leg's "
                f"ending point ({last.to_station.label})"
            ),
        )

    leg_ids = [leg.id for leg in legs]
    if len(set(leg_ids)) != len(leg_ids):
        return ValidationResult(valid=False, error="Duplicate legs detected in the itinerary")

    return ValidationResult(valid=True)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------

class Itinerary:
    """Ordered legs plus optional start, end and step stations."""

    def __init__(
        self,
        start: Optional[Station] = None,
        end: Optional[Station] = None,
        steps: Sequence[Station] = (),
        legs: Sequence[Leg] = (),
        on_change: Optional[Callable[[Itinerary], None]] = None,
    ) -> None:
        self._start = start
        self._end = end
        self._steps: list[Station] = []
        for station in steps:
            if not any(s.id == station.id for s in self._steps):
                self._steps.append(station)
        # Restored legs are kept as-is, duplicates included, so validation can report them
        self._legs: list[Leg] = list(legs)
        self._total_distance: Optional[float] = None
        self._total_time: Optional[float] = None
        self._validation = ValidationResult(valid=True)
        self.on_change = on_change
        self._compute()

    # ── Read-only state ───────────────────────────────────────────────

    @property
    def start(self) -> Optional[Station]:
        return self._start

    @property
    def end(self) -> Optional[Station]:
        return self._end

    @property
    def steps(self) -> tuple[Station, ...]:
        return tuple(self._steps)

    @property
    def legs(self) -> tuple[Leg, ...]:
        return tuple(self._legs)

    @property
    def total_distance(self) -> Optional[float]:
        return self._total_distance

    @property
    def total_time(self) -> Optional[float]:
        return self._total_time

    @property
    def validation(self) -> ValidationResult:
        return self._validation

    @property
    def is_empty(self) -> bool:
        return self._start is None and self._end is None and not self._steps and not self._legs

    @property
    def hiking_legs(self) -> int:
        return sum(1 for leg in self._legs if leg.type is LegType.HIKING)

    @property
    def rest_legs(self) -> int:
        return sum(1 for leg in self._legs if leg.type is LegType.REST)

    def get_leg(self, leg_id: str) -> Optional[Leg]:
        for leg in self._legs:
            if leg.id == leg_id:
                return leg
        return None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Itinerary):
            return NotImplemented
        return (
            self._start == other._start
            and self._end == other._end
            and self._steps == other._steps
            and self._legs == other._legs
        )

    def __repr__(self) -> str:
        return (
            f"Itinerary(start={self._start and self._start.id!r}, "
            f"end={self._end and self._end.id!r}, steps={len(self._steps)}, "
            f"legs={len(self._legs)}, valid={self._validation.valid})"
        )

    # ── Handlers ──────────────────────────────────────────────────────

    def set_start(self, station: Optional[Station]) -> None:
        self._start = station
        self.recompute_derived()

    def set_end(self, station: Optional[Station]) -> None:
        self._end = station
        self.recompute_derived()

    def add_step(self, station: Station) -> None:
        if not any(s.id == station.id for s in self._steps):
            self._steps.append(station)
        self.recompute_derived()

    def remove_step(self, station: Station) -> None:
        self._steps = [s for s in self._steps if s.id != station.id]
        self.recompute_derived()

    def add_leg(self, leg: Leg) -> None:
        if self.get_leg(leg.id) is None:
            self._legs.append(leg)
        self.recompute_derived()

    def remove_leg(self, leg_id: str) -> None:
        self._legs = [leg for leg in self._legs if leg.id != leg_id]
        self.recompute_derived()

    def update_leg(self, updated: Leg) -> None:
        self._legs = [updated if leg.id == updated.id else leg for leg in self._legs]
        self.recompute_derived()

    def clear(self) -> None:
        self._start = None
        self._end = None
        self._steps = []
        self._legs = []
        self.recompute_derived()

    # ── Derived state ─────────────────────────────────────────────────

    def _compute(self) -> None:
        self._total_distance = total_distance(self._legs)
        self._total_time = total_time(self._legs)
        self._validation = validate_itinerary(self)

    def recompute_derived(self) -> None:
        """Refresh totals and validation, then notify the change listener."""
        self._compute()
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except Exception:
            logger.exception("Itinerary change listener failed")
