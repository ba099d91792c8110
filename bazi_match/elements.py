"""
Five-element distribution of a chart.

Weights per pillar:
- Visible stem: 1.0
- Branch's own element: 0.6
- Hidden stems: main 0.6, secondary 0.3, residual 0.1
plus a Day Master bonus (3.0) on the Day Master's own element.

Strength buckets are derived from the weights on demand, never stored, so
they cannot drift from them.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from bazi_match.bazi import (
    GENERATES, OVERCOMES, Element, EarthlyBranch, HeavenlyStem, Pillar,
    hidden_stems, parse_pillar,
)
from bazi_match.config import DEFAULT_CONFIG, EngineConfig
from bazi_match.errors import ValidationError

logger = logging.getLogger(__name__)


class Strength(Enum):
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"


def element_map(value: float = 0.0) -> dict:
    """A map holding every element, all set to the same starting value."""
    return {e: value for e in Element}


def classify_strength(ratio: float, config: EngineConfig = DEFAULT_CONFIG) -> Strength:
    if ratio >= config.strong_threshold:
        return Strength.STRONG
    if ratio >= config.medium_threshold:
        return Strength.MEDIUM
    return Strength.WEAK


@dataclass(frozen=True)
class FiveElementsProfile:
    counts: dict  # Element -> number of contributions
    weights: dict  # Element -> weighted strength
    balance: float  # 0-1, higher is more balanced
    generate_chains: tuple
    overcome_chains: tuple
    config: EngineConfig = field(default=DEFAULT_CONFIG, repr=False, compare=False)

    @property
    def total(self) -> float:
        return sum(self.weights.values())

    def ratio(self, element: Element) -> float:
        total = self.total
        return self.weights[element] / total if total > 0 else 0.0

    @property
    def strengths(self) -> dict:
        return {e: classify_strength(self.ratio(e), self.config) for e in Element}

    def to_dict(self):
        strengths = self.strengths
        return {
            "counts": {e.value: self.counts[e] for e in Element},
            "weights": {e.value: round(self.weights[e], 4) for e in Element},
            "strengths": {e.value: strengths[e].value for e in Element},
            "balance": round(self.balance, 4),
            "generate_chains": list(self.generate_chains),
            "overcome_chains": list(self.overcome_chains),
        }


def branch_elements(branch: EarthlyBranch, config: EngineConfig = DEFAULT_CONFIG) -> dict:
    """Element weights contributed by one branch: its own element plus its hidden stems."""
    elements = element_map()
    elements[branch.element] += config.branch_main_weight
    for weight, hidden in zip(config.hidden_stem_weights, hidden_stems(branch)):
        elements[hidden.element] += weight
    return elements


def _chains(weights: dict, relation: dict) -> tuple:
    chains = []
    for element in Element:
        target = relation[element]
        if weights[element] > 0 and weights[target] > 0:
            chains.append(f"{element.chinese} → {target.chinese}")
    return tuple(chains)


def _as_pillar(p: Union[Pillar, str]) -> Pillar:
    if isinstance(p, Pillar):
        return p
    return parse_pillar(p)


def complete_elements(pillars: list, day_master: HeavenlyStem,
                      config: EngineConfig = DEFAULT_CONFIG) -> FiveElementsProfile:
    """
    Weighted five-element distribution for four pillars.

    Args:
        pillars: [year, month, day, hour] as Pillar objects or "甲子" labels
        day_master: the Day Master stem
    """
    if len(pillars) != 4:
        raise ValidationError("pillars", len(pillars), "exactly 4 pillars (year, month, day, hour)")
    pillars = [_as_pillar(p) for p in pillars]

    counts = element_map(0)
    weights = element_map()

    weights[day_master.element] += config.day_master_bonus
    counts[day_master.element] += 1

    for pillar in pillars:
        weights[pillar.stem.element] += config.stem_weight
        counts[pillar.stem.element] += 1

        for element, weight in branch_elements(pillar.branch, config).items():
            if weight > 0:
                weights[element] += weight
                counts[element] += 1

    max_weight = max(weights.values())
    min_weight = min(weights.values())
    balance = (1 - (max_weight - min_weight) / max_weight) if min_weight > 0 else 0.0

    return FiveElementsProfile(
        counts=counts,
        weights=weights,
        balance=balance,
        generate_chains=_chains(weights, GENERATES),
        overcome_chains=_chains(weights, OVERCOMES),
        config=config,
    )


def judge_day_master_strength(day_master: HeavenlyStem, profile: FiveElementsProfile) -> Strength:
    """Strength bucket of the Day Master's own element."""
    return profile.strengths[day_master.element]


def dominant_element(profile: FiveElementsProfile) -> Element:
    """Element carrying the most weight (first in cycle order on ties)."""
    return max(Element, key=lambda e: profile.weights[e])


def useful_element_advice(day_master: HeavenlyStem, profile: FiveElementsProfile) -> list:
    """
    Which element the chart should lean on (用神), plus a balance remark.

    A weak Day Master wants the element that generates it; a strong one
    wants the element that overcomes it, or failing that the one it drains
    into.
    """
    advice = []
    dm_element = day_master.element
    strengths = profile.strengths
    strength = strengths[dm_element]

    if strength is Strength.WEAK:
        supporter = next(e for e, target in GENERATES.items() if target == dm_element)
        if strengths[supporter] is Strength.STRONG:
            advice.append(f"Weak day master: lean on {supporter.value} ({supporter.chinese}) for support")
        else:
            advice.append("Weak day master: seek support to strengthen the self")
    elif strength is Strength.STRONG:
        controller = next(e for e, target in OVERCOMES.items() if target == dm_element)
        outlet = GENERATES[dm_element]
        if strengths[controller] is Strength.WEAK:
            advice.append(f"Strong day master: use {controller.value} ({controller.chinese}) to restrain it")
        elif strengths[outlet] is Strength.WEAK:
            advice.append(f"Strong day master: use {outlet.value} ({outlet.chinese}) to drain it")
        else:
            advice.append("Strong day master: restrain or drain it to balance the elements")

    if profile.balance < 0.3:
        advice.append("Elements are severely unbalanced")
    elif profile.balance < 0.6:
        advice.append("Elements are slightly unbalanced")
    else:
        advice.append("Elements are fairly balanced")

    return advice
