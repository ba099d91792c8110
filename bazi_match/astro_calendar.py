"""
Calendar utilities for BaZi calculations.
Handles Julian Day conversion, the simplified solar-longitude model,
solar term lookups and the Local Mean Time frame of a birth.

The solar longitude here is a truncated series (mean longitude plus the
equation of centre), good to a few hundredths of a degree. It is not an
ephemeris; Swiss Ephemeris is only used for calendar conversion.
"""

import logging
import math
import numbers
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import MutableMapping, Optional, Union

import swisseph as swe

from bazi_match.errors import ValidationError

logger = logging.getLogger(__name__)


# ============================================================
# JULIAN DAY
# ============================================================

# Fallback for degenerate input: 2000-01-01 00:00 UT
REFERENCE_JD = 2451544.5
J2000 = 2451545.0
TROPICAL_YEAR = 365.2422


def _is_finite_number(value) -> bool:
    return (isinstance(value, numbers.Real) and not isinstance(value, bool)
            and math.isfinite(value))


def julian_day_checked(year, month, day, hour=0.0) -> tuple:
    """
    Julian Day for a proleptic Gregorian date, plus a degraded flag.

    Non-numeric or non-finite input does not raise: the reference JD of
    2000-01-01 is returned with degraded=True.
    """
    if not all(_is_finite_number(v) for v in (year, month, day, hour)):
        logger.warning("degenerate julian day input %r, falling back to JD %s",
                       (year, month, day, hour), REFERENCE_JD)
        return REFERENCE_JD, True

    jd = swe.julday(int(year), int(month), int(day), float(hour), swe.GREG_CAL)
    if not math.isfinite(jd):
        logger.warning("non-finite julian day for %r, falling back to JD %s",
                       (year, month, day, hour), REFERENCE_JD)
        return REFERENCE_JD, True
    return jd, False


def to_julian_day(year, month, day, hour=0.0) -> float:
    """Julian Day (UT) at the given hour of a Gregorian date."""
    return julian_day_checked(year, month, day, hour)[0]


def julian_day_number(year: int, month: int, day: int) -> int:
    """Integer Julian Day Number of a civil date (the JD at its noon)."""
    return int(math.floor(to_julian_day(year, month, day) + 0.5))


def from_julian_day(jd: float, utc_offset_hours: float = 0.0) -> datetime:
    """Naive civil datetime for a Julian Day, shifted by a UTC offset."""
    y, m, d, h = swe.revjul(jd + utc_offset_hours / 24.0, swe.GREG_CAL)
    return datetime(y, m, d) + timedelta(seconds=round(h * 3600))


# ============================================================
# SOLAR LONGITUDE
# ============================================================

def solar_longitude(jd: float) -> float:
    """
    Geometric solar longitude in degrees [0, 360).

    Mean longitude L0 plus the equation of centre C, both as polynomials in
    Julian centuries from J2000.
    """
    if not _is_finite_number(jd):
        logger.warning("non-finite julian day %r for solar longitude, using 0", jd)
        return 0.0

    t = (jd - J2000) / 36525.0
    l0 = 280.46646 + 36000.76983 * t + 0.0003032 * t * t
    m = math.radians(357.52911 + 35999.05029 * t - 0.0001537 * t * t)
    c = ((1.914602 - 0.004817 * t - 0.000014 * t * t) * math.sin(m)
         + (0.019993 - 0.000101 * t) * math.sin(2 * m)
         + 0.000289 * math.sin(3 * m))
    return (l0 + c) % 360.0


# ============================================================
# SOLAR TERM DEFINITIONS
# ============================================================
#
# 24 terms, 15° apart, starting at Li Chun (315°). The even positions are
# the 12 Jie (节) that open the BaZi months:
#
# Li Chun (315°) → Tiger month     Li Qiu (135°) → Monkey month
# Jing Zhe (345°) → Rabbit month   Bai Lu (165°) → Rooster month
# Qing Ming (15°) → Dragon month   Han Lu (195°) → Dog month
# Li Xia (45°) → Snake month       Li Dong (225°) → Pig month
# Mang Zhong (75°) → Horse month   Da Xue (255°) → Rat month
# Xiao Shu (105°) → Goat month     Xiao Han (285°) → Ox month

@dataclass(frozen=True)
class SolarTerm:
    position: int  # 0 = Li Chun ... 23 = Da Han
    chinese: str
    pinyin: str

    @property
    def longitude(self) -> float:
        return (315.0 + 15.0 * self.position) % 360.0

    @property
    def is_jie(self) -> bool:
        return self.position % 2 == 0

    @property
    def jie_number(self) -> int:
        """Index of the solar month this term falls in (0 = Tiger month)."""
        return self.position // 2


SOLAR_TERMS = tuple(SolarTerm(i, chinese, pinyin) for i, (chinese, pinyin) in enumerate([
    ("立春", "Li Chun"), ("雨水", "Yu Shui"), ("惊蛰", "Jing Zhe"), ("春分", "Chun Fen"),
    ("清明", "Qing Ming"), ("谷雨", "Gu Yu"), ("立夏", "Li Xia"), ("小满", "Xiao Man"),
    ("芒种", "Mang Zhong"), ("夏至", "Xia Zhi"), ("小暑", "Xiao Shu"), ("大暑", "Da Shu"),
    ("立秋", "Li Qiu"), ("处暑", "Chu Shu"), ("白露", "Bai Lu"), ("秋分", "Qiu Fen"),
    ("寒露", "Han Lu"), ("霜降", "Shuang Jiang"), ("立冬", "Li Dong"), ("小雪", "Xiao Xue"),
    ("大雪", "Da Xue"), ("冬至", "Dong Zhi"), ("小寒", "Xiao Han"), ("大寒", "Da Han"),
]))

TERM_BY_NAME = {t.chinese: t for t in SOLAR_TERMS}
TERM_BY_NAME.update({t.pinyin: t for t in SOLAR_TERMS})

LI_CHUN = SOLAR_TERMS[0]

# Half-width of the bisection window around the first estimate
SEARCH_WINDOW_DAYS = 16.0


def solar_term(key: Union[int, str, SolarTerm]) -> SolarTerm:
    """Look up a solar term by position, Chinese name or pinyin."""
    if isinstance(key, SolarTerm):
        return key
    if isinstance(key, int) and not isinstance(key, bool) and 0 <= key < len(SOLAR_TERMS):
        return SOLAR_TERMS[key]
    if isinstance(key, str) and key in TERM_BY_NAME:
        return TERM_BY_NAME[key]
    raise ValidationError("solar_term", key, "position 0-23 or a solar term name such as 立春")


@dataclass(frozen=True)
class SolarTermEvent:
    term: SolarTerm
    moment: datetime  # civil time in the table's UTC offset
    solar_year: int  # the year whose Li Chun opens the cycle containing this term
    degraded: bool = False

    def to_dict(self):
        return {
            "term": self.term.chinese,
            "pinyin": self.term.pinyin,
            "longitude": self.term.longitude,
            "moment": self.moment.isoformat(),
            "solar_year": self.solar_year,
            "degraded": self.degraded,
        }


def _signed_distance(target: float, jd: float) -> float:
    """Signed angular distance of the Sun past the target longitude."""
    return (solar_longitude(jd) - target + 180.0) % 360.0 - 180.0


def solar_term_jd(solar_year: int, term: SolarTerm,
                  tolerance: float = 1e-4, max_iterations: int = 20) -> tuple:
    """
    Julian Day (UT) at which the Sun reaches a term's longitude.

    Bisection over a window around a linear first estimate; the signed
    distance keeps the search monotonic across the 0°/360° wrap. Returns
    (jd, degraded). When the iteration budget runs out the best estimate so
    far is returned.

    Args:
        solar_year: year whose Li Chun opens the cycle; Xiao Han and Da Han
            of solar year N fall in January of N+1
        term: the solar term
        tolerance: stop once within this many degrees of the target
        max_iterations: bisection budget
    """
    estimate = to_julian_day(solar_year, 2, 4) + term.position * TROPICAL_YEAR / 24.0
    low, high = estimate - SEARCH_WINDOW_DAYS, estimate + SEARCH_WINDOW_DAYS
    best_jd, best_error = estimate, math.inf

    for _ in range(max_iterations):
        mid = (low + high) / 2.0
        error = _signed_distance(term.longitude, mid)
        if not math.isfinite(error):
            logger.warning("solar term search for %s %s diverged, using estimate",
                           solar_year, term.pinyin)
            return estimate, True
        if abs(error) < abs(best_error):
            best_jd, best_error = mid, error
        if abs(error) < tolerance:
            return mid, False
        if error < 0:
            low = mid
        else:
            high = mid

    logger.debug("solar term search for %s %s stopped at %.6f° off",
                 solar_year, term.pinyin, best_error)
    return best_jd, False


def solar_term_time(solar_year: int, term: Union[int, str, SolarTerm],
                    utc_offset_hours: float = 8.0) -> datetime:
    """Civil date/time of a solar term (China Standard Time by default)."""
    jd, _ = solar_term_jd(solar_year, solar_term(term))
    return from_julian_day(jd, utc_offset_hours)


# ============================================================
# SOLAR TERM TABLE
# ============================================================

class SolarTermTable:
    """
    Solar term events by solar year.

    The cache is an explicit dependency: pass a dict to share computed years
    between charts, or leave it out to recompute every time.
    """

    def __init__(self, utc_offset_hours: float = 8.0, tolerance: float = 1e-4,
                 max_iterations: int = 20,
                 cache: Optional[MutableMapping[int, tuple]] = None):
        self.utc_offset_hours = utc_offset_hours
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.cache = cache

    @classmethod
    def from_config(cls, config, cache: Optional[MutableMapping[int, tuple]] = None) -> "SolarTermTable":
        return cls(utc_offset_hours=config.utc_offset_hours,
                   tolerance=config.term_tolerance_degrees,
                   max_iterations=config.term_max_iterations,
                   cache=cache)

    def terms_for(self, solar_year: int) -> tuple:
        """All 24 events of a solar year, Li Chun first, in chronological order."""
        if self.cache is not None and solar_year in self.cache:
            return self.cache[solar_year]

        events = []
        for term in SOLAR_TERMS:
            jd, degraded = solar_term_jd(solar_year, term, self.tolerance, self.max_iterations)
            events.append(SolarTermEvent(
                term=term,
                moment=from_julian_day(jd, self.utc_offset_hours),
                solar_year=solar_year,
                degraded=degraded,
            ))
        events = tuple(events)

        if self.cache is not None:
            self.cache[solar_year] = events
        return events

    def _events_around(self, moment: datetime) -> tuple:
        # Solar year Y-1 covers Feb Y-1 .. Jan Y, solar year Y covers Feb Y .. Jan Y+1
        return self.terms_for(moment.year - 1) + self.terms_for(moment.year)

    def current_term(self, moment: datetime) -> SolarTermEvent:
        """The most recently passed solar term (inclusive of the moment itself)."""
        passed = [e for e in self._events_around(moment) if e.moment <= moment]
        return passed[-1]

    def next_term(self, moment: datetime) -> SolarTermEvent:
        """The first solar term strictly after the moment."""
        for event in self._events_around(moment):
            if event.moment > moment:
                return event
        return self.terms_for(moment.year + 1)[0]

    def previous_jie(self, moment: datetime) -> SolarTermEvent:
        """The Jie that opened the solar month containing the moment."""
        passed = [e for e in self._events_around(moment)
                  if e.term.is_jie and e.moment <= moment]
        return passed[-1]

    def next_jie(self, moment: datetime) -> SolarTermEvent:
        """The Jie that opens the next solar month."""
        for event in self._events_around(moment) + self.terms_for(moment.year + 1):
            if event.term.is_jie and event.moment > moment:
                return event
        raise AssertionError("a Jie always follows within a solar year")


def current_solar_term(moment: datetime) -> SolarTermEvent:
    return SolarTermTable().current_term(moment)


def next_solar_term(moment: datetime) -> SolarTermEvent:
    return SolarTermTable().next_term(moment)


def days_between(date1: datetime, date2: datetime) -> int:
    """Whole days from date1 to date2 (floored, negative if date2 is earlier)."""
    return math.floor((date2 - date1).total_seconds() / 86400)


# ============================================================
# BIRTH TIME FRAMES
# ============================================================
#
# A clock reading at a birth place is used in two frames. The day and hour
# pillars follow the Sun at that longitude (Local Mean Time). Solar terms
# are instants, so the term lookup needs the same instant expressed in the
# table's UTC offset.

def lmt_correction(longitude: float, standard_offset_hours: float = 8.0) -> float:
    """
    Minutes to add to zone standard time to get Local Mean Time.

    The zone meridian is 15° per hour of offset, and the Sun crosses one
    degree of longitude every 4 minutes.

    Example:
        Nanning (108.37°E) on UTC+8: (108.37 - 120.0) * 4 = -46.52 min
    """
    return (longitude - standard_offset_hours * 15.0) * 4.0


def apply_lmt(clock_time: datetime, longitude: float,
              standard_offset_hours: float = 8.0) -> datetime:
    return clock_time + timedelta(minutes=lmt_correction(longitude, standard_offset_hours))


def shift_offset(clock_time: datetime, from_offset_hours: float, to_offset_hours: float) -> datetime:
    """Re-express a naive civil time from one UTC offset in another."""
    return clock_time + timedelta(hours=to_offset_hours - from_offset_hours)


@dataclass(frozen=True)
class BirthTime:
    local_mean: datetime  # drives the day and hour pillars
    table_time: datetime  # the same instant in the solar term table's offset


def resolve_birth_time(clock_time: datetime, longitude: Optional[float] = None,
                       standard_offset_hours: Optional[float] = None,
                       table_offset_hours: float = 8.0) -> BirthTime:
    """
    Split a clock reading into its Local Mean Time and solar-term frames.

    Without a longitude the clock is taken as civil time in the table's
    offset and both frames coincide.
    """
    if longitude is None:
        return BirthTime(local_mean=clock_time, table_time=clock_time)
    if standard_offset_hours is None:
        standard_offset_hours = table_offset_hours
    return BirthTime(
        local_mean=apply_lmt(clock_time, longitude, standard_offset_hours),
        table_time=shift_offset(clock_time, standard_offset_hours, table_offset_hours),
    )
