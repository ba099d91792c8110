"""
Luck cycles: decade pillars (大运 Da Yun) and annual pillars (流年 Liu Nian).

Direction of count depends on sex + Day Master polarity:
- Yang Day Master + Male OR Yin Day Master + Female → count FORWARD
- Yin Day Master + Male OR Yang Day Master + Female → count BACKWARD

Decade pillars step from the month pillar along the 60-cycle in that
direction. Periods are always listed in chronological order; the direction
only decides which pillars they carry.

The start age comes from one of two strategies (EngineConfig.start_age_strategy):
- "solar_term": distance from birth to the next Jie (forward) or the
  previous Jie (backward), 3 days = 1 year, 1 day = 4 months
- "fixed": a fixed start age (traditionally 8)

Annual pillars are computed per calendar year with the same rule as the year
pillar, independent of the direction.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from bazi_match.astro_calendar import SolarTermTable
from bazi_match.bazi import (
    HeavenlyStem, Pillar, TenGod, annual_pillar, classify, pillar_from_index, pillar_ten_gods,
)
from bazi_match.config import DEFAULT_CONFIG, EngineConfig
from bazi_match.create_chart import Chart, Sex
from bazi_match.elements import element_map
from bazi_match.errors import CycleError, ValidationError

logger = logging.getLogger(__name__)

DAYS_PER_YEAR_OF_LUCK = 3
MONTHS_PER_DAY_OF_LUCK = 4


def cycle_direction(day_master: HeavenlyStem, sex: Optional[Sex]) -> int:
    """+1 for forward (阳男阴女顺排), -1 for backward (阴男阳女逆排)."""
    if sex is None:
        raise ValidationError("sex", None, "male | female (decides the cycle direction)")
    return 1 if (sex is Sex.MALE) == day_master.is_yang else -1


@dataclass(frozen=True)
class StartAge:
    exact: float  # in years
    years: int
    months: int
    days: int

    def to_dict(self):
        return {"exact": round(self.exact, 4), "years": self.years,
                "months": self.months, "days": self.days}


def start_age_from_days(days: float) -> StartAge:
    """Convert days to the nearest Jie into a luck start age (3 days = 1 year)."""
    years = int(days // DAYS_PER_YEAR_OF_LUCK)
    months_float = (days - years * DAYS_PER_YEAR_OF_LUCK) * MONTHS_PER_DAY_OF_LUCK
    months = int(months_float)
    remaining_days = int(round((months_float - months) * 30))
    if remaining_days == 30:
        months, remaining_days = months + 1, 0
    return StartAge(exact=days / DAYS_PER_YEAR_OF_LUCK, years=years,
                    months=months, days=remaining_days)


def compute_start_age(chart: Chart, direction: int, config: EngineConfig = DEFAULT_CONFIG,
                      calendar: Optional[SolarTermTable] = None) -> StartAge:
    if config.start_age_strategy == "fixed":
        return StartAge(exact=float(config.fixed_start_age), years=config.fixed_start_age,
                        months=0, days=0)

    if calendar is None:
        calendar = SolarTermTable.from_config(config)
    if direction > 0:
        jie = calendar.next_jie(chart.term_moment)
    else:
        jie = calendar.previous_jie(chart.term_moment)
    days = abs((jie.moment - chart.term_moment).total_seconds()) / 86400
    return start_age_from_days(days)


# ============================================================
# DECADE CYCLES
# ============================================================

@dataclass(frozen=True)
class CyclePeriod:
    number: int  # 1-based
    start_age: float
    end_age: float
    start_year: int
    direction: int
    pillar: Pillar
    ten_god: TenGod
    elements: dict  # Element -> contribution

    def covers(self, age: float) -> bool:
        return self.start_age <= age < self.end_age

    def to_dict(self):
        return {
            "number": self.number,
            "start_age": round(self.start_age, 4),
            "end_age": round(self.end_age, 4),
            "start_year": self.start_year,
            "direction": "forward" if self.direction > 0 else "backward",
            "pillar": self.pillar.label,
            "ten_god": self.ten_god.to_dict(),
            "elements": {e.value: w for e, w in self.elements.items() if w},
        }


def pillar_elements(pillar: Pillar) -> dict:
    """Element contribution of a cycle pillar: stem and branch weigh 1 each."""
    elements = element_map()
    elements[pillar.stem.element] += 1.0
    elements[pillar.branch.element] += 1.0
    return elements


def compute_decade_cycles(chart: Chart, count: Optional[int] = None,
                          config: EngineConfig = DEFAULT_CONFIG,
                          calendar: Optional[SolarTermTable] = None) -> list:
    """
    Decade pillars for a chart, in chronological order.

    Raises:
        ValidationError: the chart has no sex, or count < 1
    """
    if count is None:
        count = config.decade_count
    if count < 1:
        raise ValidationError("count", count, ">= 1")

    direction = cycle_direction(chart.day_master, chart.sex)
    start = compute_start_age(chart, direction, config, calendar)
    month_index = chart.pillar("month").index

    periods = []
    for i in range(count):
        pillar = pillar_from_index(month_index + direction * (i + 1), "decade")
        start_age = start.exact + i * 10
        periods.append(CyclePeriod(
            number=i + 1,
            start_age=start_age,
            end_age=start_age + 10,
            start_year=chart.request.year + int(math.floor(start_age)),
            direction=direction,
            pillar=pillar,
            ten_god=TenGod(pillar.stem, classify(chart.day_master, pillar.stem)),
            elements=pillar_elements(pillar),
        ))

    logger.debug("decade cycles for %s: start age %.2f, %s, %s",
                 chart.birth_date, start.exact, "forward" if direction > 0 else "backward",
                 " ".join(p.pillar.label for p in periods))
    return periods


def decade_for_age(decades: list, age: float) -> Optional[CyclePeriod]:
    """The decade covering an age, if any."""
    for period in decades:
        if period.covers(age):
            return period
    return None


# ============================================================
# ANNUAL CYCLES
# ============================================================

@dataclass(frozen=True)
class AnnualPeriod:
    age: int
    year: int
    pillar: Pillar
    ten_gods: tuple  # stem first, then hidden stems
    elements: dict  # Element -> contribution of the year stem
    forward: bool

    @property
    def relations(self) -> frozenset:
        return frozenset(tg.relation for tg in self.ten_gods)

    def to_dict(self):
        return {
            "age": self.age,
            "year": self.year,
            "pillar": self.pillar.label,
            "ten_gods": [tg.to_dict() for tg in self.ten_gods],
            "elements": {e.value: w for e, w in self.elements.items() if w},
            "direction": "forward" if self.forward else "backward",
        }


def compute_annual_cycles(day_master: HeavenlyStem, start_year: int, start_age: int,
                          forward: bool = True, end_age: int = 100) -> list:
    """
    Annual pillars from start_age to end_age (inclusive), one per calendar year.

    Each year's pillar is (year - 4) mod 60, the same rule as the year
    pillar; forward only records the owning decade direction.
    """
    start_age = int(math.floor(start_age))
    periods = []
    for age in range(start_age, end_age + 1):
        year = start_year + (age - start_age)
        pillar = annual_pillar(year)
        elements = element_map()
        elements[pillar.stem.element] += 1.0
        periods.append(AnnualPeriod(
            age=age,
            year=year,
            pillar=pillar,
            ten_gods=tuple(pillar_ten_gods(day_master, pillar)),
            elements=elements,
            forward=forward,
        ))
    return periods


def annual_cycles_for_chart(chart: Chart, decades: list,
                            config: EngineConfig = DEFAULT_CONFIG) -> list:
    """
    Annual pillars starting at the first decade.

    Raises:
        CycleError: decades is empty
    """
    if not decades:
        raise CycleError(f"no decade cycles for chart born {chart.birth_date}")
    first = decades[0]
    return compute_annual_cycles(
        chart.day_master,
        start_year=first.start_year,
        start_age=int(math.floor(first.start_age)),
        forward=first.direction > 0,
        end_age=config.annual_end_age,
    )
