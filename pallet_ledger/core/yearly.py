"""
Yearly and quarterly cost roll-up.

Combines the monthly entry, exit and storage summaries of one year.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from .month_key import MonthKey
from .monthly import EntrySummary, ExitSummary
from .storage_accrual import StorageSummary


@dataclass(frozen=True)
class MonthlyCost:
    """Costs of one month."""
    month: MonthKey
    entry_cost: float = 0.0
    exit_cost: float = 0.0
    storage_cost: float = 0.0

    @property
    def total_cost(self) -> float:
        return self.entry_cost + self.exit_cost + self.storage_cost


@dataclass(frozen=True)
class PeriodTotals:
    """Summed costs over a run of months."""
    entry_cost: float = 0.0
    exit_cost: float = 0.0
    storage_cost: float = 0.0

    @property
    def total_cost(self) -> float:
        return self.entry_cost + self.exit_cost + self.storage_cost


@dataclass(frozen=True)
class YearlyTotals:
    """Costs of a year: twelve months, four quarters and the year."""
    year: int
    months: Tuple[MonthlyCost, ...]
    quarters: Tuple[PeriodTotals, ...]
    totals: PeriodTotals


def _sum_period(months: Iterable[MonthlyCost]) -> PeriodTotals:
    entry = exit_ = storage = 0.0
    for month in months:
        entry += month.entry_cost
        exit_ += month.exit_cost
        storage += month.storage_cost
    return PeriodTotals(entry_cost=entry, exit_cost=exit_, storage_cost=storage)


def yearly_totals(
    year: int,
    entries: Iterable[EntrySummary],
    exits: Iterable[ExitSummary],
    storage: Iterable[StorageSummary]
) -> YearlyTotals:
    """Roll monthly summaries up into a year.

    Months without activity appear with zero costs.
    """
    entry_costs: Dict[MonthKey, float] = {s.month: s.cost for s in entries if s.month.year == year}
    exit_costs: Dict[MonthKey, float] = {s.month: s.cost for s in exits if s.month.year == year}
    storage_costs: Dict[MonthKey, float] = {s.month: s.cost for s in storage if s.month.year == year}

    months = tuple(
        MonthlyCost(
            month=key,
            entry_cost=entry_costs.get(key, 0.0),
            exit_cost=exit_costs.get(key, 0.0),
            storage_cost=storage_costs.get(key, 0.0)
        )
        for key in (MonthKey(year, m) for m in range(1, 13))
    )
    quarters = tuple(_sum_period(months[q * 3:q * 3 + 3]) for q in range(4))
    return YearlyTotals(year=year, months=months, quarters=quarters, totals=_sum_period(months))


def available_years(
    entries: Iterable[EntrySummary],
    exits: Iterable[ExitSummary],
    storage: Iterable[StorageSummary]
) -> List[int]:
    """Years with any summary, newest first."""
    years = {s.month.year for s in entries}
    years.update(s.month.year for s in exits)
    years.update(s.month.year for s in storage)
    return sorted(years, reverse=True)
