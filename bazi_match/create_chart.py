"""
Chart creation.
Validates birth data and computes the four pillars, Day Master and
five-element profile of one person.

Usage from Python:
    from bazi_match.create_chart import compute_chart
    chart = compute_chart(1990, 5, 15, 14, sex="male")
    chart.labels  # ('庚午', '辛巳', '庚辰', '癸未')

An optional birth place shifts the clock time to Local Mean Time for the day
and hour pillars. The year and month pillars look up the same instant,
re-expressed in the solar term table's offset. The zone's standard offset is
detected from the coordinates (historical DST is stripped).
"""

import calendar as _calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from functools import lru_cache
from typing import Any, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from timezonefinder import TimezoneFinder

from bazi_match.astro_calendar import SolarTermEvent, SolarTermTable, resolve_birth_time
from bazi_match.bazi import (
    PILLAR_POSITIONS, HeavenlyStem, Pillar, all_ten_gods, day_pillar, hour_pillar,
    month_branch_index, month_pillar, year_pillar,
)
from bazi_match.config import DEFAULT_CONFIG, EngineConfig
from bazi_match.elements import FiveElementsProfile, complete_elements, judge_day_master_strength
from bazi_match.errors import ValidationError

logger = logging.getLogger(__name__)


class Sex(Enum):
    MALE = "male"
    FEMALE = "female"

    @property
    def opposite(self) -> "Sex":
        return Sex.FEMALE if self is Sex.MALE else Sex.MALE


def parse_sex(value: Union[str, Sex, None]) -> Optional[Sex]:
    if value is None or isinstance(value, Sex):
        return value
    try:
        return Sex(str(value).strip().lower())
    except ValueError:
        raise ValidationError("sex", value, "male | female") from None


# ============================================================
# BIRTH PLACE
# ============================================================

@dataclass(frozen=True)
class BirthPlace:
    latitude: float
    longitude: float


@lru_cache(maxsize=1)
def _timezone_finder() -> TimezoneFinder:
    return TimezoneFinder()


def standard_offset_for(place: BirthPlace, moment: datetime) -> float:
    """
    Standard UTC offset in hours of the zone containing a place.

    Uses the zone's standard offset at that date, so a birth under daylight
    saving time (e.g. China 1986-1991) is still corrected against the
    standard meridian.
    """
    tz_name = _timezone_finder().timezone_at(lat=place.latitude, lng=place.longitude)
    if tz_name is None:
        raise ValidationError("place", (place.latitude, place.longitude),
                              "coordinates inside a known time zone")

    local_dt = moment.replace(tzinfo=ZoneInfo(tz_name))
    offset = local_dt.utcoffset()
    dst = local_dt.dst()
    if dst:
        offset -= dst

    hours = offset.total_seconds() / 3600
    logger.debug("birth place %s resolved to %s, standard offset %+.2f h", place, tz_name, hours)
    return hours


# ============================================================
# REQUEST
# ============================================================

def _require_int(field_name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(field_name, value, "an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(field_name, value, "an integer")


def _require_float(field_name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError(field_name, value, "a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(field_name, value, "a number") from None


def _check_range(field_name: str, value, low, high):
    if not low <= value <= high:
        raise ValidationError(field_name, value, f"{low}-{high}")


@dataclass(frozen=True)
class ChartRequest:
    """Validated birth parameters for one chart."""

    year: int
    month: int
    day: int
    hour: int
    minute: int = 0
    sex: Optional[Sex] = None
    place: Optional[BirthPlace] = None

    REQUIRED = ("year", "month", "day", "hour")
    OPTIONAL = ("minute", "sex", "latitude", "longitude")

    def validate(self, config: EngineConfig = DEFAULT_CONFIG) -> "ChartRequest":
        for name in ("year", "month", "day", "hour", "minute"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(name, value, "an integer")

        _check_range("year", self.year, config.min_year, config.max_year)
        _check_range("month", self.month, 1, 12)
        _check_range("day", self.day, 1, _calendar.monthrange(self.year, self.month)[1])
        _check_range("hour", self.hour, 0, 23)
        _check_range("minute", self.minute, 0, 59)

        if self.sex is not None and not isinstance(self.sex, Sex):
            raise ValidationError("sex", self.sex, "male | female")
        if self.place is not None:
            _check_range("latitude", self.place.latitude, -90.0, 90.0)
            _check_range("longitude", self.place.longitude, -180.0, 180.0)
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ChartRequest":
        """
        Build a request from loosely typed input (query strings, JSON).

        Unknown and missing fields are rejected rather than defaulted.
        """
        allowed = cls.REQUIRED + cls.OPTIONAL
        for key in data:
            if key not in allowed:
                raise ValidationError(key, data[key], "one of " + ", ".join(allowed),
                                      message=f"unknown field {key!r}")
        for key in cls.REQUIRED:
            if data.get(key) is None:
                raise ValidationError(key, None, "a required field",
                                      message=f"missing field {key!r}")

        place = None
        latitude, longitude = data.get("latitude"), data.get("longitude")
        if (latitude is None) != (longitude is None):
            missing = "longitude" if longitude is None else "latitude"
            raise ValidationError(missing, None, "latitude and longitude together")
        if latitude is not None:
            place = BirthPlace(_require_float("latitude", latitude),
                               _require_float("longitude", longitude))

        return cls(
            year=_require_int("year", data["year"]),
            month=_require_int("month", data["month"]),
            day=_require_int("day", data["day"]),
            hour=_require_int("hour", data["hour"]),
            minute=_require_int("minute", data.get("minute", 0)),
            sex=parse_sex(data.get("sex")),
            place=place,
        )


# ============================================================
# CHART
# ============================================================

@dataclass(frozen=True)
class Chart:
    request: ChartRequest
    pillars: tuple  # (year, month, day, hour)
    day_master: HeavenlyStem
    elements: FiveElementsProfile
    solar_term: SolarTermEvent  # term in force at birth
    birth_moment: datetime  # after LMT correction, if a place was given
    term_moment: datetime  # birth instant in the solar term table's offset
    degraded: bool = False

    @property
    def sex(self) -> Optional[Sex]:
        return self.request.sex

    @property
    def birth_date(self) -> str:
        r = self.request
        return date(r.year, r.month, r.day).isoformat()

    @property
    def labels(self) -> tuple:
        return tuple(p.label for p in self.pillars)

    def pillar(self, position: str) -> Pillar:
        return self.pillars[PILLAR_POSITIONS.index(position)]

    @property
    def ten_gods(self) -> list:
        return all_ten_gods(self.day_master, list(self.pillars))

    @property
    def day_master_strength(self):
        return judge_day_master_strength(self.day_master, self.elements)

    def to_dict(self):
        return {
            "birth": {
                "date": self.birth_date,
                "hour": self.request.hour,
                "minute": self.request.minute,
                "sex": self.sex.value if self.sex else None,
                "moment": self.birth_moment.isoformat(),
            },
            "day_master": {
                "chinese": self.day_master.chinese,
                "pinyin": self.day_master.pinyin,
                "element": self.day_master.element.value,
                "polarity": self.day_master.polarity.value,
                "strength": self.day_master_strength.value,
            },
            "pillars": {pos: p.to_dict() for pos, p in zip(PILLAR_POSITIONS, self.pillars)},
            "ten_gods": [tg.to_dict() for tg in self.ten_gods],
            "elements": self.elements.to_dict(),
            "solar_term": self.solar_term.to_dict(),
            "degraded": self.degraded,
        }


def chart_from_request(request: ChartRequest, config: EngineConfig = DEFAULT_CONFIG,
                       calendar: Optional[SolarTermTable] = None) -> Chart:
    """Compute a chart from a request; nothing is built before validation passes."""
    request.validate(config)
    if calendar is None:
        calendar = SolarTermTable.from_config(config)

    clock = datetime(request.year, request.month, request.day, request.hour, request.minute)
    if request.place is None:
        birth = resolve_birth_time(clock, table_offset_hours=calendar.utc_offset_hours)
    else:
        birth = resolve_birth_time(clock, request.place.longitude,
                                   standard_offset_for(request.place, clock),
                                   calendar.utc_offset_hours)
    moment = birth.local_mean

    # The term in force decides both the sexagenary year (Li Chun boundary)
    # and the solar month
    term = calendar.current_term(birth.table_time)

    yp = year_pillar(term.solar_year)
    mp = month_pillar(yp.stem.index, month_branch_index(term.term.jie_number))
    dp = day_pillar(moment.date())
    hp = hour_pillar(dp.stem.index, moment.hour)

    pillars = (yp, mp, dp, hp)
    day_master = dp.stem
    elements = complete_elements(list(pillars), day_master, config)

    if term.degraded:
        logger.warning("chart for %s computed from a degraded solar term", moment.isoformat())
    logger.debug("chart %s -> %s", moment.isoformat(), " ".join(p.label for p in pillars))

    return Chart(
        request=request,
        pillars=pillars,
        day_master=day_master,
        elements=elements,
        solar_term=term,
        birth_moment=moment,
        term_moment=birth.table_time,
        degraded=term.degraded,
    )


def compute_chart(year: int, month: int, day: int, hour: int, minute: int = 0,
                  sex: Union[str, Sex, None] = None, place: Optional[BirthPlace] = None,
                  config: EngineConfig = DEFAULT_CONFIG,
                  calendar: Optional[SolarTermTable] = None) -> Chart:
    """
    Compute a full BaZi chart from birth data.

    Raises:
        ValidationError: a field is out of range; nothing is computed
    """
    request = ChartRequest(year=year, month=month, day=day, hour=hour, minute=minute,
                           sex=parse_sex(sex), place=place)
    return chart_from_request(request, config, calendar)
