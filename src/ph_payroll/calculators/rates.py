"""Derive daily, hourly, and per-minute rates from a pay profile.

All downstream money math multiplies the unrounded minute rate; rounding
happens once, when a payslip line is built.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from uuid import UUID

from ph_payroll.calculators.types import WageType
from ph_payroll.errors import InvalidRateConfigError

WORKING_DAYS_PER_MONTH = Decimal("26")
HOURS_PER_DAY = Decimal("8")
MINUTES_PER_HOUR = Decimal("60")
MINUTES_PER_DAY = HOURS_PER_DAY * MINUTES_PER_HOUR


@dataclass(frozen=True)
class DerivedRates:
    """Rates derived from one pay profile version."""

    wage_type: WageType
    base_rate: Decimal
    daily_rate: Decimal
    hourly_rate: Decimal
    minute_rate: Decimal

    @property
    def monthly_rate(self) -> Decimal:
        """Monthly equivalent (statutory base)."""
        if self.wage_type == WageType.MONTHLY:
            return self.base_rate
        return self.daily_rate * WORKING_DAYS_PER_MONTH

    def with_daily_override(self, daily_rate: Decimal | None) -> DerivedRates:
        """Rates for a single day whose daily rate was overridden."""
        if daily_rate is None:
            return self
        if daily_rate <= 0:
            raise InvalidRateConfigError(
                f"daily rate override must be positive, got {daily_rate}",
                wage_type=self.wage_type.value,
                base_rate=daily_rate,
            )
        hourly = daily_rate / HOURS_PER_DAY
        return replace(
            self,
            daily_rate=daily_rate,
            hourly_rate=hourly,
            minute_rate=hourly / MINUTES_PER_HOUR,
        )


class RateDeriver:
    """Converts a wage type and base rate into derived rates."""

    @staticmethod
    def derive(
        wage_type: WageType | str,
        base_rate: Decimal | None,
        employee_id: UUID | None = None,
    ) -> DerivedRates:
        try:
            wage_type = WageType(wage_type)
        except ValueError:
            raise InvalidRateConfigError(
                f"unknown wage type {wage_type!r}", employee_id=employee_id
            ) from None

        if base_rate is None or base_rate <= 0:
            raise InvalidRateConfigError(
                f"base rate must be positive, got {base_rate}",
                employee_id=employee_id,
                wage_type=wage_type.value,
                base_rate=base_rate,
            )

        if wage_type == WageType.MONTHLY:
            daily = base_rate / WORKING_DAYS_PER_MONTH
            hourly = daily / HOURS_PER_DAY
        elif wage_type == WageType.DAILY:
            daily = base_rate
            hourly = base_rate / HOURS_PER_DAY
        else:
            hourly = base_rate
            daily = base_rate * HOURS_PER_DAY

        return DerivedRates(
            wage_type=wage_type,
            base_rate=base_rate,
            daily_rate=daily,
            hourly_rate=hourly,
            minute_rate=hourly / MINUTES_PER_HOUR,
        )
