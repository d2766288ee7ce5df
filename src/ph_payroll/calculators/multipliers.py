"""Philippine premium pay multipliers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ph_payroll.calculators.types import DayType

BASIC = Decimal("1.00")
OT_PREMIUM = Decimal("1.25")
REST_DAY_PREMIUM = Decimal("1.30")
REGULAR_HOLIDAY_PREMIUM = Decimal("2.00")
SPECIAL_HOLIDAY_PREMIUM = Decimal("1.30")
SPECIAL_HOLIDAY_REST_DAY_PREMIUM = Decimal("1.50")
NIGHT_DIFF_RATE = Decimal("0.10")

# Overtime on a premium day earns a further 30% on the day rate
PREMIUM_DAY_OT_FACTOR = Decimal("1.30")


@dataclass(frozen=True)
class DayPremium:
    """Multipliers applied to the minute rate for one kind of day."""

    basic: Decimal
    overtime: Decimal


_PREMIUMS: dict[tuple[DayType, bool], DayPremium] = {
    (DayType.WORKDAY, False): DayPremium(BASIC, OT_PREMIUM),
    (DayType.REST_DAY, True): DayPremium(
        REST_DAY_PREMIUM, REST_DAY_PREMIUM * PREMIUM_DAY_OT_FACTOR
    ),
    (DayType.REGULAR_HOLIDAY, False): DayPremium(
        REGULAR_HOLIDAY_PREMIUM, REGULAR_HOLIDAY_PREMIUM * PREMIUM_DAY_OT_FACTOR
    ),
    (DayType.REGULAR_HOLIDAY, True): DayPremium(
        REGULAR_HOLIDAY_PREMIUM * REST_DAY_PREMIUM,
        REGULAR_HOLIDAY_PREMIUM * REST_DAY_PREMIUM * PREMIUM_DAY_OT_FACTOR,
    ),
    (DayType.SPECIAL_HOLIDAY, False): DayPremium(
        SPECIAL_HOLIDAY_PREMIUM, SPECIAL_HOLIDAY_PREMIUM * PREMIUM_DAY_OT_FACTOR
    ),
    (DayType.SPECIAL_HOLIDAY, True): DayPremium(
        SPECIAL_HOLIDAY_REST_DAY_PREMIUM,
        SPECIAL_HOLIDAY_REST_DAY_PREMIUM * PREMIUM_DAY_OT_FACTOR,
    ),
}


def premium_for(day_type: DayType, is_rest_day: bool) -> DayPremium:
    """Multipliers for a day type, compounding holidays that fall on a rest day.

    A WORKDAY is never a rest day and a REST_DAY always is.
    """
    if day_type == DayType.WORKDAY:
        is_rest_day = False
    elif day_type == DayType.REST_DAY:
        is_rest_day = True
    return _PREMIUMS[(day_type, is_rest_day)]
