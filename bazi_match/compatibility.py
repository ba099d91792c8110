"""
Compatibility scoring between two charts (八字合婚).

Five dimensions are scored independently on 0-100 and blended:
- five elements: cross-chart generate/overcome edges, balance, complementarity
- ten gods: complementary and competing relation pairs
- day master: stem combinations and strength pairing
- pillars: stem/branch combinations pillar by pillar, day pillar doubled
- cycles (only when both charts' decade cycles are supplied): synchrony of
  the decade sequences

Design principle: a pure function of its inputs. Nothing here reads the
clock or any shared state.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bazi_match.bazi import (
    GENERATES, OVERCOMES, STEM_BY_CHINESE, Element, Pillar, TenGodRelation as R,
    is_six_combination, is_stem_combination, is_three_combination,
)
from bazi_match.config import DEFAULT_CONFIG, EngineConfig
from bazi_match.create_chart import Chart
from bazi_match.elements import Strength
from bazi_match.errors import CycleError
from bazi_match.luck import decade_for_age

logger = logging.getLogger(__name__)


class CompatibilityLevel(Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    AVERAGE = "Average"
    POOR = "Poor"
    UNSUITABLE = "Unsuitable"

    @property
    def chinese(self) -> str:
        return LEVEL_CHINESE[self]


LEVEL_CHINESE = {
    CompatibilityLevel.EXCELLENT: "极佳",
    CompatibilityLevel.GOOD: "良好",
    CompatibilityLevel.AVERAGE: "一般",
    CompatibilityLevel.POOR: "较差",
    CompatibilityLevel.UNSUITABLE: "不宜",
}

LEVEL_THRESHOLDS = (
    (80, CompatibilityLevel.EXCELLENT),
    (60, CompatibilityLevel.GOOD),
    (40, CompatibilityLevel.AVERAGE),
    (20, CompatibilityLevel.POOR),
)


def compatibility_level(score: int) -> CompatibilityLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return CompatibilityLevel.UNSUITABLE


def clamp(score: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, score))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clashes(a: Element, b: Element) -> bool:
    return OVERCOMES[a] == b or OVERCOMES[b] == a


def _generates(a: Element, b: Element) -> bool:
    return GENERATES[a] == b or GENERATES[b] == a


# ============================================================
# FIVE ELEMENTS
# ============================================================

SHARED_ELEMENT_POINTS = 10
GENERATE_POINTS = 20
OVERCOME_POINTS = 15
BALANCE_POINTS = 25
COMPLEMENT_POINTS = 5
SAME_EXTREME_PENALTY = 3


@dataclass(frozen=True)
class FiveElementsAnalysis:
    score: int
    generate_chains: tuple
    overcome_chains: tuple
    complementary: tuple
    balance: float
    advice: tuple

    def to_dict(self):
        return {
            "score": self.score,
            "generate_chains": list(self.generate_chains),
            "overcome_chains": list(self.overcome_chains),
            "complementary": list(self.complementary),
            "balance": round(self.balance, 4),
            "advice": list(self.advice),
        }


def analyze_five_elements(chart_a: Chart, chart_b: Chart) -> FiveElementsAnalysis:
    weights_a, weights_b = chart_a.elements.weights, chart_b.elements.weights
    strengths_a, strengths_b = chart_a.elements.strengths, chart_b.elements.strengths

    score = 0
    generate_chains, overcome_chains, complementary = [], [], []

    for element in Element:
        if weights_a[element] > 0 and weights_b[element] > 0:
            score += SHARED_ELEMENT_POINTS

        if weights_a[element] > 0:
            produced = GENERATES[element]
            if weights_b[produced] > 0:
                generate_chains.append(f"{element.chinese} → {produced.chinese}")
                score += GENERATE_POINTS
            controlled = OVERCOMES[element]
            if weights_b[controlled] > 0:
                overcome_chains.append(f"{element.chinese} → {controlled.chinese}")
                score -= OVERCOME_POINTS

        pair = {strengths_a[element], strengths_b[element]}
        if pair == {Strength.STRONG, Strength.WEAK}:
            complementary.append(element.chinese)
            score += COMPLEMENT_POINTS
        elif len(pair) == 1 and pair != {Strength.MEDIUM}:
            score -= SAME_EXTREME_PENALTY

    balance = (chart_a.elements.balance + chart_b.elements.balance) / 2
    score += round_half_up(balance * BALANCE_POINTS)

    advice = []
    if generate_chains:
        advice.append("Elements generate each other: " + ", ".join(generate_chains))
    if overcome_chains:
        advice.append("Watch the overcoming elements: " + ", ".join(overcome_chains))
    if complementary:
        advice.append("One partner's strong element fills the other's weak one: "
                      + ", ".join(complementary))
    if balance > 0.7:
        advice.append("Both charts are well balanced")

    return FiveElementsAnalysis(
        score=int(clamp(score)),
        generate_chains=tuple(generate_chains),
        overcome_chains=tuple(overcome_chains),
        complementary=tuple(complementary),
        balance=balance,
        advice=tuple(advice),
    )


# ============================================================
# TEN GODS
# ============================================================

BEST_TEN_GOD_PAIRS = (
    frozenset({R.DIRECT_OFFICER, R.DIRECT_WEALTH}),     # 官财相配
    frozenset({R.DIRECT_RESOURCE, R.EATING_GOD}),       # 印食相生
    frozenset({R.COMPANION, R.ROB_WEALTH}),             # 比劫相助
)

GOOD_TEN_GOD_PAIRS = (
    frozenset({R.SEVEN_KILLINGS, R.DIRECT_RESOURCE}),   # 杀印相生
    frozenset({R.HURTING_OFFICER, R.DIRECT_WEALTH}),    # 伤官生财
    frozenset({R.INDIRECT_WEALTH, R.DIRECT_OFFICER}),   # 偏财配官
)

# Relations that compete when both partners carry them (双杀, 双伤, 双劫)
COMPETITIVE_RELATIONS = frozenset({R.SEVEN_KILLINGS, R.HURTING_OFFICER, R.ROB_WEALTH})

TEN_GOD_BASE = 50
BEST_PAIR_POINTS = 15
GOOD_PAIR_POINTS = 10
CAUTION_PAIR_POINTS = -12
IDENTICAL_PAIR_POINTS = 3


@dataclass(frozen=True)
class TenGodsAnalysis:
    score: int
    complementary_pairs: tuple
    conflicting_pairs: tuple
    advice: tuple

    def to_dict(self):
        return {
            "score": self.score,
            "complementary_pairs": list(self.complementary_pairs),
            "conflicting_pairs": list(self.conflicting_pairs),
            "advice": list(self.advice),
        }


def ten_god_pair_points(a: R, b: R) -> int:
    """Points for one cross pair of relations."""
    if a == b:
        return CAUTION_PAIR_POINTS if a in COMPETITIVE_RELATIONS else IDENTICAL_PAIR_POINTS
    pair = frozenset({a, b})
    if pair in BEST_TEN_GOD_PAIRS:
        return BEST_PAIR_POINTS
    if pair in GOOD_TEN_GOD_PAIRS:
        return GOOD_PAIR_POINTS
    return 0


def analyze_ten_gods(chart_a: Chart, chart_b: Chart) -> TenGodsAnalysis:
    relations_a = [tg.relation for tg in chart_a.ten_gods]
    relations_b = [tg.relation for tg in chart_b.ten_gods]

    score = TEN_GOD_BASE
    complementary, conflicting = [], []
    for a in relations_a:
        for b in relations_b:
            points = ten_god_pair_points(a, b)
            score += points
            if points >= GOOD_PAIR_POINTS:
                complementary.append(f"{a.value}-{b.value}")
            elif points < 0:
                conflicting.append(f"{a.value}-{b.value}")

    advice = []
    if complementary:
        advice.append("Complementary ten gods: " + ", ".join(complementary))
    if conflicting:
        advice.append("Competing ten gods: " + ", ".join(conflicting))

    return TenGodsAnalysis(
        score=int(clamp(score)),
        complementary_pairs=tuple(complementary),
        conflicting_pairs=tuple(conflicting),
        advice=tuple(advice),
    )


# ============================================================
# DAY MASTER
# ============================================================

# Day masters where one generates the other
GOOD_DAY_MASTER_PAIRS = tuple(
    frozenset({STEM_BY_CHINESE[a].index, STEM_BY_CHINESE[b].index})
    for a, b in (("甲", "癸"), ("乙", "壬"), ("丙", "乙"), ("丁", "甲"), ("戊", "丁"),
                 ("己", "丙"), ("庚", "己"), ("辛", "戊"), ("壬", "辛"), ("癸", "庚"))
)

DAY_MASTER_BASE = 50
BEST_DAY_MASTER_POINTS = 30
GOOD_DAY_MASTER_POINTS = 15
OPPOSITE_STRENGTH_POINTS = 10
MATCHING_STRENGTH_POINTS = 8
MIXED_STRENGTH_POINTS = 5


@dataclass(frozen=True)
class DayMasterAnalysis:
    score: int
    strength_a: Strength
    strength_b: Strength
    combination: str  # "best", "good" or "combo"
    description: str
    advice: tuple

    def to_dict(self):
        return {
            "score": self.score,
            "strength_a": self.strength_a.value,
            "strength_b": self.strength_b.value,
            "combination": self.combination,
            "description": self.description,
            "advice": list(self.advice),
        }


def strength_pairing_points(a: Strength, b: Strength) -> tuple:
    """(points, label) for the pairing of two day-master strengths."""
    if {a, b} == {Strength.STRONG, Strength.WEAK}:
        return OPPOSITE_STRENGTH_POINTS, "opposite strengths"
    if a == b:
        return MATCHING_STRENGTH_POINTS, "matching strengths"
    return MIXED_STRENGTH_POINTS, "mixed strengths"


def analyze_day_master(chart_a: Chart, chart_b: Chart) -> DayMasterAnalysis:
    dm_a, dm_b = chart_a.day_master, chart_b.day_master
    score = DAY_MASTER_BASE

    if is_stem_combination(dm_a, dm_b):
        combination = "best"
        score += BEST_DAY_MASTER_POINTS
    elif frozenset({dm_a.index, dm_b.index}) in GOOD_DAY_MASTER_PAIRS:
        combination = "good"
        score += GOOD_DAY_MASTER_POINTS
    else:
        combination = "combo"

    strength_a = chart_a.day_master_strength
    strength_b = chart_b.day_master_strength
    points, pairing = strength_pairing_points(strength_a, strength_b)
    score += points

    kind = "same stem" if dm_a == dm_b else combination
    description = f"{dm_a.chinese}{dm_b.chinese} {kind}, {pairing}"
    return DayMasterAnalysis(
        score=int(clamp(score)),
        strength_a=strength_a,
        strength_b=strength_b,
        combination=combination,
        description=description,
        advice=(description,),
    )


# ============================================================
# PILLARS
# ============================================================

STEM_EQUAL_POINTS = 10
STEM_GENERATE_POINTS = 8
STEM_COMBINATION_POINTS = 12
SIX_COMBINATION_POINTS = 15
THREE_COMBINATION_POINTS = 12
BRANCH_GENERATE_POINTS = 6
NO_CLASH_POINTS = 3
PILLAR_MATCH_CEILING = 25


@dataclass(frozen=True)
class PillarsAnalysis:
    score: int
    year_match: int
    month_match: int
    day_match: int  # reported un-doubled
    hour_match: int
    advice: tuple

    def to_dict(self):
        return {
            "score": self.score,
            "year_match": self.year_match,
            "month_match": self.month_match,
            "day_match": self.day_match,
            "hour_match": self.hour_match,
            "advice": list(self.advice),
        }


def pillar_match(p1: Pillar, p2: Pillar) -> int:
    """Match score of two pillars, capped at PILLAR_MATCH_CEILING."""
    s1, s2 = p1.stem, p2.stem
    b1, b2 = p1.branch, p2.branch
    score = 0

    if s1 == s2:
        score += STEM_EQUAL_POINTS
    if _generates(s1.element, s2.element):
        score += STEM_GENERATE_POINTS
    if is_stem_combination(s1, s2):
        score += STEM_COMBINATION_POINTS

    if is_six_combination(b1, b2):
        score += SIX_COMBINATION_POINTS
    if is_three_combination(b1, b2):
        score += THREE_COMBINATION_POINTS
    if _generates(b1.element, b2.element):
        score += BRANCH_GENERATE_POINTS

    if not _clashes(s1.element, s2.element):
        score += NO_CLASH_POINTS
    if not _clashes(b1.element, b2.element):
        score += NO_CLASH_POINTS

    return min(score, PILLAR_MATCH_CEILING)


def analyze_pillars(chart_a: Chart, chart_b: Chart) -> PillarsAnalysis:
    year = pillar_match(chart_a.pillar("year"), chart_b.pillar("year"))
    month = pillar_match(chart_a.pillar("month"), chart_b.pillar("month"))
    day = pillar_match(chart_a.pillar("day"), chart_b.pillar("day"))
    hour = pillar_match(chart_a.pillar("hour"), chart_b.pillar("hour"))

    total = year + month + 2 * day + hour

    advice = []
    if year > 15:
        advice.append("Year pillars match: similar family backgrounds")
    if month > 15:
        advice.append("Month pillars match: complementary temperaments")
    if 2 * day > 30:
        advice.append("Day pillars match: a solid foundation for marriage")
    if hour > 15:
        advice.append("Hour pillars match: harmony in later life")

    return PillarsAnalysis(
        score=int(clamp(total)),
        year_match=year,
        month_match=month,
        day_match=day,
        hour_match=hour,
        advice=tuple(advice),
    )


# ============================================================
# CYCLE SYNCHRONY
# ============================================================

KEY_AGES = (20, 25, 30, 35, 40)
KEY_AGE_LEVEL_SCORES = {"high": 100, "medium": 60, "low": 20}


@dataclass(frozen=True)
class KeyAge:
    age: int
    pillar_a: str
    pillar_b: str
    level: str  # high / medium / low

    def to_dict(self):
        return {"age": self.age, "pillar_a": self.pillar_a,
                "pillar_b": self.pillar_b, "level": self.level}


@dataclass(frozen=True)
class CycleAnalysis:
    score: int
    start_age_difference: float
    start_age_score: int
    period_score: int
    key_ages: tuple
    advice: tuple

    def to_dict(self):
        return {
            "score": self.score,
            "start_age_difference": round(self.start_age_difference, 4),
            "start_age_score": self.start_age_score,
            "period_score": self.period_score,
            "key_ages": [k.to_dict() for k in self.key_ages],
            "advice": list(self.advice),
        }


def element_relation_level(a: Element, b: Element) -> str:
    if _generates(a, b):
        return "high"
    if _clashes(a, b):
        return "low"
    return "medium"


PERIOD_RELATION_SCORES = {"high": 100, "medium": 70, "low": 30}


def analyze_cycles(decades_a: list, decades_b: list) -> CycleAnalysis:
    """
    Luck-cycle synchrony of two people.

    The period score pairs decades by their number (first with first,
    second with second) up to the shorter list, so two people whose cycles
    start at different ages are compared phase by phase. The start-age
    difference is scored separately. Key ages look up whichever decade each
    person is in at that age.

    Raises:
        CycleError: either decade list is empty
    """
    if not decades_a or not decades_b:
        raise CycleError("cycle synchrony needs at least one decade per chart")

    difference = abs(decades_a[0].start_age - decades_b[0].start_age)
    start_age_score = round_half_up(max(0.0, 100 - difference * 10))

    period_scores = [
        PERIOD_RELATION_SCORES[element_relation_level(pa.pillar.stem.element, pb.pillar.stem.element)]
        for pa, pb in zip(decades_a, decades_b)
    ]
    period_score = round_half_up(sum(period_scores) / len(period_scores))

    key_ages = []
    for age in KEY_AGES:
        pa, pb = decade_for_age(decades_a, age), decade_for_age(decades_b, age)
        if pa is None or pb is None:
            continue
        key_ages.append(KeyAge(
            age=age,
            pillar_a=pa.pillar.label,
            pillar_b=pb.pillar.label,
            level=element_relation_level(pa.pillar.stem.element, pb.pillar.stem.element),
        ))
    if key_ages:
        key_score = sum(KEY_AGE_LEVEL_SCORES[k.level] for k in key_ages) / len(key_ages)
    else:
        key_score = 50

    score = round_half_up(0.3 * start_age_score + 0.4 * period_score + 0.3 * key_score)

    advice = []
    if difference <= 2:
        advice.append("Luck cycles start at nearly the same age")
    high = [str(k.age) for k in key_ages if k.level == "high"]
    low = [str(k.age) for k in key_ages if k.level == "low"]
    if high:
        advice.append("Supportive cycles around ages " + ", ".join(high))
    if low:
        advice.append("Challenging cycles around ages " + ", ".join(low))

    return CycleAnalysis(
        score=int(clamp(score)),
        start_age_difference=difference,
        start_age_score=start_age_score,
        period_score=period_score,
        key_ages=tuple(key_ages),
        advice=tuple(advice),
    )


# ============================================================
# OVERALL
# ============================================================

STATIC_WEIGHTS = {"five_elements": 0.30, "ten_gods": 0.25, "day_master": 0.25, "pillars": 0.20}
CYCLE_WEIGHTS = {"five_elements": 0.20, "ten_gods": 0.15, "day_master": 0.25, "pillars": 0.20,
                 "cycles": 0.20}

OVERALL_LINES = {
    "five_elements": "Five elements match well",
    "ten_gods": "Ten gods complement each other",
    "day_master": "Day masters suit each other",
    "pillars": "Pillars are in harmony",
    "cycles": "Luck cycles run in step",
}


@dataclass(frozen=True)
class CompatibilityResult:
    overall_score: int
    level: CompatibilityLevel
    five_elements: FiveElementsAnalysis
    ten_gods: TenGodsAnalysis
    day_master: DayMasterAnalysis
    pillars: PillarsAnalysis
    cycles: Optional[CycleAnalysis]
    overall: tuple
    recommendations: tuple

    @property
    def dimensions(self) -> dict:
        dims = {
            "five_elements": self.five_elements,
            "ten_gods": self.ten_gods,
            "day_master": self.day_master,
            "pillars": self.pillars,
        }
        if self.cycles is not None:
            dims["cycles"] = self.cycles
        return dims

    def to_dict(self):
        return {
            "overall_score": self.overall_score,
            "level": self.level.value,
            "level_chinese": self.level.chinese,
            "analysis": {name: dim.to_dict() for name, dim in self.dimensions.items()},
            "overall": list(self.overall),
            "recommendations": list(self.recommendations),
        }


def overall_score(scores: dict) -> int:
    """Weighted blend of dimension scores; cycle weights apply when cycles were scored."""
    weights = CYCLE_WEIGHTS if "cycles" in scores else STATIC_WEIGHTS
    total = sum(scores[name] * weight for name, weight in weights.items())
    return int(clamp(round_half_up(total)))


def bracket_recommendations(score: int) -> list:
    if score >= 80:
        return ["Highly compatible charts, an ideal match",
                "Cherish the bond and build the future together"]
    if score >= 60:
        return ["Good compatibility with a sound basis for marriage",
                "Mutual understanding and tolerance will help both grow"]
    if score >= 40:
        return ["Average compatibility, the relationship needs work",
                "Communicate more and look for shared interests"]
    return ["Low compatibility, consider carefully",
            "Get to know each other well before deciding"]


def score_compatibility(chart_a: Chart, chart_b: Chart,
                        decades_a: Optional[list] = None, decades_b: Optional[list] = None,
                        config: EngineConfig = DEFAULT_CONFIG) -> CompatibilityResult:
    """
    Score two charts against each other.

    The cycle dimension is included only when both decade lists are given.
    """
    five_elements = analyze_five_elements(chart_a, chart_b)
    ten_gods = analyze_ten_gods(chart_a, chart_b)
    day_master = analyze_day_master(chart_a, chart_b)
    pillars = analyze_pillars(chart_a, chart_b)
    cycles = None
    if decades_a is not None and decades_b is not None:
        cycles = analyze_cycles(decades_a, decades_b)

    dims = {
        "five_elements": five_elements,
        "ten_gods": ten_gods,
        "day_master": day_master,
        "pillars": pillars,
    }
    if cycles is not None:
        dims["cycles"] = cycles

    score = overall_score({name: dim.score for name, dim in dims.items()})
    overall = tuple(OVERALL_LINES[name] for name, dim in dims.items()
                    if dim.score >= config.good_score_threshold)

    logger.debug("compatibility %s x %s: %s (%s)", " ".join(chart_a.labels),
                 " ".join(chart_b.labels), score,
                 ", ".join(f"{name}={dim.score}" for name, dim in dims.items()))

    return CompatibilityResult(
        overall_score=score,
        level=compatibility_level(score),
        five_elements=five_elements,
        ten_gods=ten_gods,
        day_master=day_master,
        pillars=pillars,
        cycles=cycles,
        overall=overall,
        recommendations=tuple(bracket_recommendations(score)) + overall,
    )
