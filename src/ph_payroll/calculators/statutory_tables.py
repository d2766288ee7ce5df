"""Versioned statutory contribution and withholding tables.

Tables are configuration, not law encoded in code paths: the built-in 2026
set can be replaced wholesale by a JSON file (see ``load_tables``).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any

from ph_payroll.calculators.types import TaxBracket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SssBracket:
    """One SSS salary bracket (monthly amounts)."""

    min_salary: Decimal
    max_salary: Decimal | None  # None = no upper limit
    msc: Decimal
    regular_ee: Decimal
    regular_er: Decimal
    ec_er: Decimal
    mpf_ee: Decimal = Decimal("0")
    mpf_er: Decimal = Decimal("0")

    @property
    def total_ee(self) -> Decimal:
        return self.regular_ee + self.mpf_ee

    @property
    def total_er(self) -> Decimal:
        return self.regular_er + self.ec_er + self.mpf_er

    def covers(self, salary: Decimal) -> bool:
        if salary < self.min_salary:
            return False
        return self.max_salary is None or salary <= self.max_salary


@dataclass(frozen=True)
class PhilHealthTable:
    rate: Decimal
    floor: Decimal
    ceiling: Decimal
    employee_share: Decimal = Decimal("0.5")


@dataclass(frozen=True)
class PagIbigTable:
    ee_rate: Decimal
    ee_low_rate: Decimal
    low_threshold: Decimal
    er_rate: Decimal
    max_base: Decimal


@dataclass(frozen=True)
class StatutoryTables:
    version: str
    sss: tuple[SssBracket, ...]
    philhealth: PhilHealthTable
    pagibig: PagIbigTable
    tax_brackets: tuple[TaxBracket, ...]


def build_sss_2026() -> tuple[SssBracket, ...]:
    """SSS 2026 schedule: 5% EE / 10% ER, MSC capped at 20,000 with MPF above."""
    rate_ee = Decimal("0.05")
    regular_cap = Decimal("20000")

    def bracket(lo: Decimal, hi: Decimal | None, msc: Decimal) -> SssBracket:
        regular_ee = min(msc, regular_cap) * rate_ee
        mpf_ee = max(Decimal("0"), msc - regular_cap) * rate_ee
        return SssBracket(
            min_salary=lo,
            max_salary=hi,
            msc=msc,
            regular_ee=regular_ee,
            regular_er=regular_ee * 2,
            ec_er=Decimal("10") if msc < Decimal("15000") else Decimal("30"),
            mpf_ee=mpf_ee,
            mpf_er=mpf_ee * 2,
        )

    brackets = [bracket(Decimal("0"), Decimal("5249.99"), Decimal("5000"))]
    for k in range(1, 61):
        lo = Decimal("4750") + Decimal("500") * k
        hi = None if k == 60 else lo + Decimal("499.99")
        brackets.append(bracket(lo, hi, Decimal("5000") + Decimal("500") * k))
    return tuple(brackets)


BIR_2023_BRACKETS: tuple[TaxBracket, ...] = (
    TaxBracket(Decimal("0"), Decimal("250000"), Decimal("0")),
    TaxBracket(Decimal("250000"), Decimal("400000"), Decimal("0.15")),
    TaxBracket(Decimal("400000"), Decimal("800000"), Decimal("0.20"), Decimal("22500")),
    TaxBracket(Decimal("800000"), Decimal("2000000"), Decimal("0.25"), Decimal("102500")),
    TaxBracket(Decimal("2000000"), Decimal("8000000"), Decimal("0.30"), Decimal("402500")),
    TaxBracket(Decimal("8000000"), None, Decimal("0.35"), Decimal("2202500")),
)

DEFAULT_TABLES = StatutoryTables(
    version="PH-2026.1",
    sss=build_sss_2026(),
    philhealth=PhilHealthTable(
        rate=Decimal("0.05"),
        floor=Decimal("10000"),
        ceiling=Decimal("100000"),
    ),
    pagibig=PagIbigTable(
        ee_rate=Decimal("0.02"),
        ee_low_rate=Decimal("0.01"),
        low_threshold=Decimal("1500"),
        er_rate=Decimal("0.02"),
        max_base=Decimal("10000"),
    ),
    tax_brackets=BIR_2023_BRACKETS,
)


def _dec(value: Any) -> Decimal | None:
    return None if value is None else Decimal(str(value))


def tables_from_dict(data: dict[str, Any]) -> StatutoryTables:
    """Build tables from their JSON representation.

    Missing sections fall back to the built-in defaults.
    """
    sss = DEFAULT_TABLES.sss
    if "sss" in data:
        sss = tuple(
            SssBracket(
                min_salary=_dec(row["min_salary"]),
                max_salary=_dec(row.get("max_salary")),
                msc=_dec(row["msc"]),
                regular_ee=_dec(row["regular_ee"]),
                regular_er=_dec(row["regular_er"]),
                ec_er=_dec(row.get("ec_er", 0)),
                mpf_ee=_dec(row.get("mpf_ee", 0)),
                mpf_er=_dec(row.get("mpf_er", 0)),
            )
            for row in data["sss"]
        )

    philhealth = DEFAULT_TABLES.philhealth
    if "philhealth" in data:
        ph = data["philhealth"]
        philhealth = PhilHealthTable(
            rate=_dec(ph["rate"]),
            floor=_dec(ph["floor"]),
            ceiling=_dec(ph["ceiling"]),
            employee_share=_dec(ph.get("employee_share", "0.5")),
        )

    pagibig = DEFAULT_TABLES.pagibig
    if "pagibig" in data:
        pi = data["pagibig"]
        pagibig = PagIbigTable(
            ee_rate=_dec(pi["ee_rate"]),
            ee_low_rate=_dec(pi["ee_low_rate"]),
            low_threshold=_dec(pi["low_threshold"]),
            er_rate=_dec(pi["er_rate"]),
            max_base=_dec(pi["max_base"]),
        )

    tax_brackets = DEFAULT_TABLES.tax_brackets
    if "tax_brackets" in data:
        tax_brackets = tuple(
            TaxBracket(
                min_amount=_dec(row["min_amount"]),
                max_amount=_dec(row.get("max_amount")),
                rate=_dec(row["rate"]),
                flat_amount=_dec(row.get("flat_amount", 0)),
            )
            for row in data["tax_brackets"]
        )

    return StatutoryTables(
        version=str(data["version"]),
        sss=sss,
        philhealth=philhealth,
        pagibig=pagibig,
        tax_brackets=tax_brackets,
    )


def load_tables(path: str | None = None) -> StatutoryTables:
    """Load tables from a JSON file, or the built-in defaults when no path is set."""
    if not path:
        return DEFAULT_TABLES
    with Path(path).open(encoding="utf-8") as fh:
        data = json.load(fh)
    tables = tables_from_dict(data)
    logger.info("Loaded statutory tables version %s from %s", tables.version, path)
    return tables


# What a missing or malformed tables file raises out of load_tables
TABLE_LOAD_ERRORS = (OSError, ValueError, KeyError, TypeError, ArithmeticError)


@lru_cache(maxsize=8)
def cached_tables(path: str | None = None) -> StatutoryTables:
    """load_tables memoized per path. Failed loads are not cached."""
    return load_tables(path)
