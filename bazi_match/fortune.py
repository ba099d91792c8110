"""
Fortune decision table.

Selects, per life area, which narrative template the presentation layer
should render. Only the categorical outcome is decided here; the prose lives
with the templates.
"""

from enum import Enum

from bazi_match.bazi import TenGodRelation as R

LIFE_AREAS = ("wealth", "career", "marriage", "health", "study", "social")


class FortuneOutlook(Enum):
    FAVOURABLE = "favourable"
    STEADY = "steady"


# Life area -> relations whose presence makes the area favourable
FORTUNE_TRIGGERS = {
    "wealth": frozenset({R.INDIRECT_WEALTH, R.DIRECT_WEALTH}),
    "career": frozenset({R.DIRECT_OFFICER, R.SEVEN_KILLINGS}),
    "marriage": frozenset({R.DIRECT_OFFICER}),
    "health": frozenset({R.INDIRECT_RESOURCE, R.DIRECT_RESOURCE}),
    "study": frozenset({R.EATING_GOD, R.HURTING_OFFICER}),
    "social": frozenset({R.COMPANION, R.ROB_WEALTH}),
}


def fortune_outlook(ten_gods: list) -> dict:
    """Outlook per life area for a list of TenGod records."""
    present = {tg.relation for tg in ten_gods}
    return {
        area: FortuneOutlook.FAVOURABLE if present & FORTUNE_TRIGGERS[area] else FortuneOutlook.STEADY
        for area in LIFE_AREAS
    }


def template_keys(ten_gods: list) -> dict:
    """Template key per life area, e.g. {"wealth": "wealth.favourable", ...}."""
    return {area: f"{area}.{outlook.value}" for area, outlook in fortune_outlook(ten_gods).items()}
