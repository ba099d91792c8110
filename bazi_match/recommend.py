"""
Counterpart recommendation (配偶推荐).

A bounded generate-and-score search: candidate birth years from a demographic
policy, candidate day masters from the user's day master, one synthetic chart
per (year, day master) built on a seasonal month/hour probe, every chart
scored with score_compatibility and ranked.

The search never loops past max_candidates and an empty result is a normal
outcome.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from bazi_match.bazi import (
    GENERATES, HEAVENLY_STEMS, OVERCOMES, STEM_BY_CHINESE, Element, HeavenlyStem, day_pillar,
)
from bazi_match.compatibility import CompatibilityResult, score_compatibility
from bazi_match.config import DEFAULT_CONFIG, EngineConfig
from bazi_match.create_chart import Chart, Sex, compute_chart, parse_sex
from bazi_match.errors import ValidationError

logger = logging.getLogger(__name__)


# ============================================================
# DEMOGRAPHIC POLICY
# ============================================================

@dataclass(frozen=True)
class DemographicPolicy:
    """
    Which birth years to search.

    With sex_bias, a male user searches counterparts born the same year or
    up to `span` years later first, a female user the same year or up to
    `span` years earlier. The range widens to ±span only when the biased one
    is empty. reference_year (default: this year) anchors the age band.
    """

    span: int = 5
    min_age: int = 20
    max_age: int = 40
    reference_year: Optional[int] = None
    sex_bias: bool = True

    def offsets(self, sex: Optional[Sex]) -> list:
        if not self.sex_bias or sex is None:
            return list(range(-self.span, self.span + 1))
        if sex is Sex.MALE:
            return list(range(0, self.span + 1))
        return list(range(-self.span, 1))


def candidate_years(birth_year: int, sex: Optional[Sex], policy: DemographicPolicy,
                    config: EngineConfig = DEFAULT_CONFIG) -> list:
    reference_year = policy.reference_year or date.today().year

    def allowed(offsets):
        years = []
        for offset in offsets:
            year = birth_year + offset
            age = reference_year - year
            if policy.min_age <= age <= policy.max_age and config.min_year <= year <= config.max_year:
                years.append(year)
        return years

    years = allowed(policy.offsets(sex))
    if not years and policy.sex_bias and sex is not None:
        years = allowed(range(-policy.span, policy.span + 1))
    return years


# ============================================================
# CANDIDATE DAY MASTERS
# ============================================================

# Best counterpart day masters per day master
SPOUSE_DAY_MASTERS = {
    "甲": ("己", "庚", "辛"),
    "乙": ("庚", "戊", "辛"),
    "丙": ("辛", "壬", "癸"),
    "丁": ("壬", "庚", "癸"),
    "戊": ("癸", "甲", "乙"),
    "己": ("甲", "壬", "癸"),
    "庚": ("乙", "丙", "丁"),
    "辛": ("丙", "戊", "丁"),
    "壬": ("丁", "戊", "己"),
    "癸": ("戊", "丙", "丁"),
}


def balancing_elements(element: Element) -> list:
    """Elements that overcome an element, then the one it generates."""
    controllers = [e for e, target in OVERCOMES.items() if target == element]
    return controllers + [GENERATES[element]]


def candidate_day_masters(chart: Chart, config: EngineConfig = DEFAULT_CONFIG) -> list:
    """
    Day masters worth searching for.

    A dominant day-master element (ratio above dominant_element_threshold)
    switches from the static table to stems that rebalance it.
    """
    element = chart.day_master.element
    if chart.elements.ratio(element) > config.dominant_element_threshold:
        wanted = balancing_elements(element)
        stems = [s for e in wanted for s in HEAVENLY_STEMS if s.element == e]
        logger.debug("day master element %s dominant, searching %s", element.value,
                     "".join(s.chinese for s in stems))
        return stems
    return [STEM_BY_CHINESE[c] for c in SPOUSE_DAY_MASTERS[chart.day_master.chinese]]


# ============================================================
# SEASONAL PROBES
# ============================================================

# (element at its peak, month, hour); days 10-19 fall after the month's Jie
SEASONAL_PROBES = (
    (Element.WOOD, 2, 4),
    (Element.FIRE, 5, 12),
    (Element.EARTH, 4, 8),
    (Element.METAL, 8, 18),
    (Element.WATER, 11, 0),
)
PROBE_DAYS = range(10, 20)


def probe_day(year: int, month: int, target: HeavenlyStem) -> Optional[int]:
    """The day in the probe window whose day stem is the target (ten days, ten stems)."""
    for day in PROBE_DAYS:
        if day_pillar(date(year, month, day)).stem == target:
            return day
    return None


def synthesize_candidate(year: int, target: HeavenlyStem, sex: Optional[Sex],
                         config: EngineConfig = DEFAULT_CONFIG) -> Optional[Chart]:
    """
    First probe that yields a chart with the target day master.

    Probes are rotated per (year, stem) so candidates spread over the seasons.
    """
    start = (year + target.index) % len(SEASONAL_PROBES)
    for i in range(len(SEASONAL_PROBES)):
        _, month, hour = SEASONAL_PROBES[(start + i) % len(SEASONAL_PROBES)]
        day = probe_day(year, month, target)
        if day is None:
            continue
        try:
            chart = compute_chart(year, month, day, hour, sex=sex, config=config)
        except ValidationError as e:
            logger.debug("skipping probe %s-%02d-%02d %02d:00: %s", year, month, day, hour, e)
            continue
        if chart.day_master == target:
            return chart
    return None


# ============================================================
# SEARCH
# ============================================================

@dataclass(frozen=True)
class RankedCandidate:
    rank: int
    chart: Chart
    compatibility: CompatibilityResult
    advantages: tuple
    considerations: tuple

    def to_dict(self):
        return {
            "rank": self.rank,
            "score": self.compatibility.overall_score,
            "level": self.compatibility.level.value,
            "chart": self.chart.to_dict(),
            "compatibility": self.compatibility.to_dict(),
            "advantages": list(self.advantages),
            "considerations": list(self.considerations),
        }


CONSIDERATION_THRESHOLD = 50

ADVANTAGE_LINES = {
    "five_elements": "Five elements match well, a harmonious atmosphere",
    "ten_gods": "Ten gods complement each other, compatible personalities",
    "day_master": "Day masters suit each other, a stable foundation",
    "pillars": "Pillars are coordinated, a harmonious family life",
}

CONSIDERATION_LINES = {
    "five_elements": "Some element conflict, mind emotional balance",
    "ten_gods": "Ten gods relations need more understanding and tolerance",
    "day_master": "Day master strengths differ, support each other",
}


def advantages(result: CompatibilityResult, config: EngineConfig = DEFAULT_CONFIG) -> list:
    dims = result.dimensions
    lines = [line for name, line in ADVANTAGE_LINES.items()
             if dims[name].score >= config.good_score_threshold]
    if result.overall_score >= 80:
        lines.append("Very high overall compatibility, an ideal partner")
    return lines or ["A fair basic match that needs time to grow"]


def considerations(result: CompatibilityResult) -> list:
    dims = result.dimensions
    lines = [line for name, line in CONSIDERATION_LINES.items()
             if dims[name].score < CONSIDERATION_THRESHOLD]
    return lines or ["A good match, keep communicating"]


def recommend_counterparts(chart: Chart, sex: Union[str, Sex, None] = None,
                           policy: Optional[DemographicPolicy] = None,
                           config: EngineConfig = DEFAULT_CONFIG) -> list:
    """
    Ranked counterpart charts for a user's chart, best first.

    Args:
        chart: the user's chart
        sex: the user's sex; defaults to the chart's. Counterparts get the opposite
        policy: demographic policy for the birth-year range

    Returns:
        up to config.max_candidates RankedCandidate records, possibly none
    """
    if policy is None:
        policy = DemographicPolicy()
    sex = parse_sex(sex) or chart.sex
    counterpart_sex = sex.opposite if sex is not None else None

    years = candidate_years(chart.request.year, sex, policy, config)
    day_masters = candidate_day_masters(chart, config)
    logger.info("searching counterparts for %s: years %s, day masters %s",
                " ".join(chart.labels), years, "".join(s.chinese for s in day_masters))

    candidates = []
    for year in years:
        for target in day_masters:
            if len(candidates) >= config.max_candidates:
                break
            candidate = synthesize_candidate(year, target, counterpart_sex, config)
            if candidate is not None:
                candidates.append(candidate)

    scored = [(c, score_compatibility(chart, c, config=config)) for c in candidates]
    scored.sort(key=lambda pair: pair[1].overall_score, reverse=True)

    ranked = [
        RankedCandidate(
            rank=i + 1,
            chart=candidate,
            compatibility=result,
            advantages=tuple(advantages(result, config)),
            considerations=tuple(considerations(result)),
        )
        for i, (candidate, result) in enumerate(scored)
    ]
    if not ranked:
        logger.info("no counterpart satisfies the search constraints")
    return ranked
