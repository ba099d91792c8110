"""
BaZi (Four Pillars of Destiny) rule tables and pillar arithmetic.

Handles:
- Heavenly stem / earthly branch tables (element, polarity, hidden stems)
- Five-element generate and overcome cycles
- Year / month / day / hour pillar rules on the sexagenary cycle
- Ten Gods relationship mapping

Design principle: the tables here are the single source of truth. Every
other module looks stems, branches and element relations up here rather
than re-declaring them.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Union

from bazi_match.astro_calendar import julian_day_number
from bazi_match.errors import ValidationError

logger = logging.getLogger(__name__)


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    WOOD = "wood"
    FIRE = "fire"
    EARTH = "earth"
    METAL = "metal"
    WATER = "water"

    @property
    def chinese(self) -> str:
        return ELEMENT_CHINESE[self]


ELEMENT_CHINESE = {
    Element.WOOD: "木",
    Element.FIRE: "火",
    Element.EARTH: "土",
    Element.METAL: "金",
    Element.WATER: "水",
}


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    @property
    def is_yang(self) -> bool:
        return self.polarity is Polarity.YANG

    def __str__(self):
        return f"{self.chinese} {self.pinyin} ({self.polarity.value} {self.element.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    element: Element  # primary/season element
    polarity: Polarity
    index: int  # 0-11 in the cycle
    hidden_stems: tuple  # chinese glyphs of hidden stems (main_qi, middle_qi, residual_qi)

    def __str__(self):
        return f"{self.chinese} {self.pinyin} ({self.animal})"


@dataclass(frozen=True)
class Pillar:
    stem: HeavenlyStem
    branch: EarthlyBranch
    position: str  # "year", "month", "day", "hour", "decade", "annual"

    @property
    def label(self) -> str:
        return self.stem.chinese + self.branch.chinese

    @property
    def index(self) -> int:
        """Position of this stem/branch pair in the 60-cycle (甲子 = 0)."""
        return (6 * self.stem.index - 5 * self.branch.index) % 60

    def __str__(self):
        return f"{self.label} {self.stem.pinyin} {self.branch.pinyin} ({self.branch.animal})"

    def to_dict(self):
        return {
            "position": self.position,
            "label": self.label,
            "stem": {
                "chinese": self.stem.chinese,
                "pinyin": self.stem.pinyin,
                "element": self.stem.element.value,
                "polarity": self.stem.polarity.value,
            },
            "branch": {
                "chinese": self.branch.chinese,
                "pinyin": self.branch.pinyin,
                "animal": self.branch.animal,
                "element": self.branch.element.value,
                "polarity": self.branch.polarity.value,
                "hidden_stems": list(self.branch.hidden_stems),
            },
        }


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = (
    HeavenlyStem("甲", "Jia", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Element.WATER, Polarity.YIN, 9),
)

EARTHLY_BRANCHES = (
    EarthlyBranch("子", "Zi", "Rat", Element.WATER, Polarity.YANG, 0,
                  ("癸",)),
    EarthlyBranch("丑", "Chou", "Ox", Element.EARTH, Polarity.YIN, 1,
                  ("己", "癸", "辛")),
    EarthlyBranch("寅", "Yin", "Tiger", Element.WOOD, Polarity.YANG, 2,
                  ("甲", "丙", "戊")),
    EarthlyBranch("卯", "Mao", "Rabbit", Element.WOOD, Polarity.YIN, 3,
                  ("乙",)),
    EarthlyBranch("辰", "Chen", "Dragon", Element.EARTH, Polarity.YANG, 4,
                  ("戊", "乙", "癸")),
    EarthlyBranch("巳", "Si", "Snake", Element.FIRE, Polarity.YIN, 5,
                  ("丙", "庚", "戊")),
    EarthlyBranch("午", "Wu", "Horse", Element.FIRE, Polarity.YANG, 6,
                  ("丁", "己")),
    EarthlyBranch("未", "Wei", "Goat", Element.EARTH, Polarity.YIN, 7,
                  ("己", "丁", "乙")),
    EarthlyBranch("申", "Shen", "Monkey", Element.METAL, Polarity.YANG, 8,
                  ("庚", "壬", "戊")),
    EarthlyBranch("酉", "You", "Rooster", Element.METAL, Polarity.YIN, 9,
                  ("辛",)),
    EarthlyBranch("戌", "Xu", "Dog", Element.EARTH, Polarity.YANG, 10,
                  ("戊", "辛", "丁")),
    EarthlyBranch("亥", "Hai", "Pig", Element.WATER, Polarity.YIN, 11,
                  ("壬", "甲")),
)

# Lookup helpers
STEM_BY_CHINESE = {s.chinese: s for s in HEAVENLY_STEMS}
STEM_BY_PINYIN = {s.pinyin: s for s in HEAVENLY_STEMS}
BRANCH_BY_CHINESE = {b.chinese: b for b in EARTHLY_BRANCHES}
BRANCH_BY_PINYIN = {b.pinyin: b for b in EARTHLY_BRANCHES}

PILLAR_POSITIONS = ("year", "month", "day", "hour")


def stem(key: Union[int, str, HeavenlyStem]) -> HeavenlyStem:
    """Look up a heavenly stem by index, Chinese glyph or pinyin."""
    if isinstance(key, HeavenlyStem):
        return key
    if isinstance(key, int) and not isinstance(key, bool):
        if 0 <= key < len(HEAVENLY_STEMS):
            return HEAVENLY_STEMS[key]
    elif isinstance(key, str):
        found = STEM_BY_CHINESE.get(key) or STEM_BY_PINYIN.get(key)
        if found is not None:
            return found
    raise ValidationError("stem", key, "index 0-9, one of 甲乙丙丁戊己庚辛壬癸, or its pinyin")


def branch(key: Union[int, str, EarthlyBranch]) -> EarthlyBranch:
    """Look up an earthly branch by index, Chinese glyph or pinyin."""
    if isinstance(key, EarthlyBranch):
        return key
    if isinstance(key, int) and not isinstance(key, bool):
        if 0 <= key < len(EARTHLY_BRANCHES):
            return EARTHLY_BRANCHES[key]
    elif isinstance(key, str):
        found = BRANCH_BY_CHINESE.get(key) or BRANCH_BY_PINYIN.get(key)
        if found is not None:
            return found
    raise ValidationError("branch", key, "index 0-11, one of 子丑寅卯辰巳午未申酉戌亥, or its pinyin")


def hidden_stems(b: EarthlyBranch) -> tuple:
    """Hidden stems of a branch, main qi first."""
    return tuple(STEM_BY_CHINESE[c] for c in b.hidden_stems)


def parse_pillar(label: str, position: str = "") -> Pillar:
    """Rebuild a Pillar from its two-glyph label, e.g. "甲子"."""
    if not isinstance(label, str) or len(label) != 2:
        raise ValidationError("pillar", label, "two glyphs: a stem followed by a branch")
    s = STEM_BY_CHINESE.get(label[0])
    b = BRANCH_BY_CHINESE.get(label[1])
    if s is None or b is None:
        raise ValidationError("pillar", label, "two glyphs: a stem followed by a branch")
    if s.index % 2 != b.index % 2:
        raise ValidationError("pillar", label, "a stem and branch of the same polarity")
    return Pillar(stem=s, branch=b, position=position)


def pillar_from_index(index: int, position: str) -> Pillar:
    """Pillar at a position of the 60-cycle; any integer is normalised."""
    index %= 60
    return Pillar(stem=HEAVENLY_STEMS[index % 10],
                  branch=EARTHLY_BRANCHES[index % 12],
                  position=position)


# ============================================================
# FIVE ELEMENT CYCLES
# ============================================================

# Generate cycle: Wood → Fire → Earth → Metal → Water → Wood
GENERATES = {
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
}

# Overcome cycle: Wood → Earth → Water → Fire → Metal → Wood
OVERCOMES = {
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
}


def element_relationship(day_master_element: Element, other_element: Element) -> Optional[str]:
    """Determine the elemental relationship from the Day Master's perspective."""
    if day_master_element == other_element:
        return "same"
    elif GENERATES[day_master_element] == other_element:
        return "i_produce"  # DM produces other
    elif GENERATES[other_element] == day_master_element:
        return "produces_me"  # other produces DM
    elif OVERCOMES[day_master_element] == other_element:
        return "i_control"  # DM controls other
    elif OVERCOMES[other_element] == day_master_element:
        return "controls_me"  # other controls DM
    return None


# ============================================================
# BRANCH AND STEM COMBINATIONS
# ============================================================

# Six Combinations (六合)
SIX_COMBINATIONS = (
    frozenset((0, 1)),    # Zi-Chou
    frozenset((2, 11)),   # Yin-Hai
    frozenset((3, 10)),   # Mao-Xu
    frozenset((4, 9)),    # Chen-You
    frozenset((5, 8)),    # Si-Shen
    frozenset((6, 7)),    # Wu-Wei
)

# Three Harmony frames (三合)
THREE_COMBINATIONS = (
    frozenset((8, 0, 4)),    # Shen-Zi-Chen → Water
    frozenset((2, 6, 10)),   # Yin-Wu-Xu → Fire
    frozenset((5, 9, 1)),    # Si-You-Chou → Metal
    frozenset((11, 3, 7)),   # Hai-Mao-Wei → Wood
)

# Stem combinations (天干五合): 甲己 乙庚 丙辛 丁壬 戊癸, always five apart
STEM_COMBINATIONS = tuple(frozenset((i, i + 5)) for i in range(5))


def is_six_combination(a: EarthlyBranch, b: EarthlyBranch) -> bool:
    return frozenset((a.index, b.index)) in SIX_COMBINATIONS


def is_three_combination(a: EarthlyBranch, b: EarthlyBranch) -> bool:
    if a.index == b.index:
        return False
    return any(a.index in frame and b.index in frame for frame in THREE_COMBINATIONS)


def is_stem_combination(a: HeavenlyStem, b: HeavenlyStem) -> bool:
    return frozenset((a.index, b.index)) in STEM_COMBINATIONS


# ============================================================
# PILLAR COMPUTATION
# ============================================================

def year_pillar(sexagenary_year: int, position: str = "year") -> Pillar:
    """
    Compute the Year Pillar for a sexagenary year.

    The BaZi year starts at Li Chun (立春), not January 1st; the caller
    decides the sexagenary year from the solar-term table. Year 4 CE was
    Jia Zi, the start of the cycle.
    """
    return pillar_from_index(sexagenary_year - 4, position)


def annual_pillar(year: int) -> Pillar:
    """The pillar ruling a calendar year (Liu Nian), by the year-pillar rule."""
    return year_pillar(year, position="annual")


# Five Tigers Escape (五虎遁): year stem pair → stem of the Tiger month
TIGER_START_STEMS = (2, 4, 6, 8, 0)  # 丙 戊 庚 壬 甲


def month_branch_index(jie_number: int) -> int:
    """Branch of the solar month opened by the n-th Jie (0 = Li Chun → Yin)."""
    return (jie_number + 2) % 12


def month_pillar(year_stem_index: int, month_branch_index: int) -> Pillar:
    """
    Compute the Month Pillar using the Five Tigers Escape (Wu Hu Dun) formula.

    - Year stem Jia/Ji → Tiger month stem starts at Bing
    - Year stem Yi/Geng → Wu
    - Year stem Bing/Xin → Geng
    - Year stem Ding/Ren → Ren
    - Year stem Wu/Gui → Jia

    Args:
        year_stem_index: index of the year's heavenly stem (0-9)
        month_branch_index: index of the month's earthly branch (0-11);
            the Tiger month (Yin) has branch index 2
    """
    start_stem = TIGER_START_STEMS[year_stem_index % 5]
    months_from_tiger = (month_branch_index - 2) % 12
    stem_index = (start_stem + months_from_tiger) % 10

    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[month_branch_index % 12],
        position="month"
    )


# Offset anchoring the Julian Day Number to the sexagenary day count
JDN_SEXAGENARY_OFFSET = 49


def day_pillar(day: date) -> Pillar:
    """
    Compute the Day Pillar from the Julian Day Number.

    (JDN + 49) mod 60 gives the sexagenary index, e.g. 1949-10-01 = Jia Zi,
    2000-01-01 = Wu Wu.
    """
    jdn = julian_day_number(day.year, day.month, day.day)
    return pillar_from_index(jdn + JDN_SEXAGENARY_OFFSET, "day")


def hour_branch_index(hour: int) -> int:
    """
    Two-hour branches (shi chen), boundaries at odd hours:
    23:00-00:59 = Zi (0), 01:00-02:59 = Chou (1), ... 21:00-22:59 = Hai (11).
    """
    return ((hour + 1) // 2) % 12


# Five Rats Escape (五鼠遁): day stem pair → stem of the Zi hour
RAT_START_STEMS = (0, 2, 4, 6, 8)  # 甲 丙 戊 庚 壬


def hour_pillar(day_stem_index: int, hour: int) -> Pillar:
    """
    Compute the Hour Pillar using the Five Rats Escape (Wu Shu Dun) formula.

    Args:
        day_stem_index: index of the day's heavenly stem (0-9)
        hour: hour in 24h format
    """
    branch_index = hour_branch_index(hour)
    start_stem = RAT_START_STEMS[day_stem_index % 5]
    stem_index = (start_stem + branch_index) % 10

    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[branch_index],
        position="hour"
    )


# ============================================================
# TEN GODS (十神) RELATIONSHIP MAPPING
# ============================================================

class TenGodRelation(Enum):
    COMPANION = "比肩"
    ROB_WEALTH = "劫财"
    EATING_GOD = "食神"
    HURTING_OFFICER = "伤官"
    INDIRECT_WEALTH = "偏财"
    DIRECT_WEALTH = "正财"
    SEVEN_KILLINGS = "七杀"
    DIRECT_OFFICER = "正官"
    INDIRECT_RESOURCE = "偏印"
    DIRECT_RESOURCE = "正印"

    @property
    def english(self) -> str:
        return self.name.replace("_", " ").title()


TEN_GODS = {
    # (relationship, same_polarity): relation
    ("same", True): TenGodRelation.COMPANION,
    ("same", False): TenGodRelation.ROB_WEALTH,
    ("i_produce", True): TenGodRelation.EATING_GOD,
    ("i_produce", False): TenGodRelation.HURTING_OFFICER,
    # "produces me" and "I control" test polarity the other way round
    ("produces_me", True): TenGodRelation.INDIRECT_WEALTH,
    ("produces_me", False): TenGodRelation.DIRECT_WEALTH,
    ("i_control", True): TenGodRelation.INDIRECT_RESOURCE,
    ("i_control", False): TenGodRelation.DIRECT_RESOURCE,
    ("controls_me", True): TenGodRelation.SEVEN_KILLINGS,
    ("controls_me", False): TenGodRelation.DIRECT_OFFICER,
}


@dataclass(frozen=True)
class TenGod:
    stem: HeavenlyStem
    relation: TenGodRelation

    def to_dict(self):
        return {
            "stem": self.stem.chinese,
            "relation": self.relation.value,
            "relation_english": self.relation.english,
        }


def classify(day_master: HeavenlyStem, other: HeavenlyStem) -> TenGodRelation:
    """
    Determine the Ten God relation of a stem to the Day Master.

    Args:
        day_master: the Day Master stem
        other: the stem being evaluated
    """
    if day_master.index == other.index:
        return TenGodRelation.COMPANION

    relationship = element_relationship(day_master.element, other.element)
    if relationship is None:
        logger.warning("no element relation between %s and %s, defaulting to %s",
                       day_master, other, TenGodRelation.COMPANION.value)
        return TenGodRelation.COMPANION

    same_polarity = (day_master.polarity == other.polarity)
    return TEN_GODS[(relationship, same_polarity)]


def all_ten_gods(day_master: HeavenlyStem, pillars: list) -> list:
    """
    Ten Gods of the visible stems in [year, month, day, hour] order.

    The day pillar's stem is the Day Master itself and is skipped, so the
    result is aligned to [year, month, hour].
    """
    if len(pillars) != 4:
        raise ValidationError("pillars", len(pillars), "exactly 4 pillars (year, month, day, hour)")
    return [TenGod(p.stem, classify(day_master, p.stem))
            for i, p in enumerate(pillars) if i != 2]


def pillar_ten_gods(day_master: HeavenlyStem, pillar: Pillar) -> list:
    """Ten Gods of a pillar's stem followed by every hidden stem of its branch."""
    stems = (pillar.stem,) + hidden_stems(pillar.branch)
    return [TenGod(s, classify(day_master, s)) for s in stems]
