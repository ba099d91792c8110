"""Julian Day, solar longitude and solar term tests"""

import math
from datetime import date, datetime

import pytest
import swisseph as swe

from bazi_match.astro_calendar import (
    REFERENCE_JD, SOLAR_TERMS, SolarTermTable, apply_lmt, current_solar_term, days_between,
    from_julian_day, julian_day_checked, julian_day_number, lmt_correction, next_solar_term,
    resolve_birth_time, shift_offset, solar_longitude, solar_term, solar_term_jd, solar_term_time,
    to_julian_day,
)
from bazi_match.errors import ValidationError


class TestJulianDay:
    def test_j2000_midnight(self):
        assert to_julian_day(2000, 1, 1) == pytest.approx(2451544.5)

    def test_day_number_is_noon_jd(self):
        assert julian_day_number(2000, 1, 1) == 2451545

    def test_hour_fraction(self):
        assert to_julian_day(2000, 1, 1, 12.0) == pytest.approx(2451545.0)

    @pytest.mark.parametrize("bad", [
        (float("nan"), 1, 1, 0.0),
        (2000, float("inf"), 1, 0.0),
        ("2000", 1, 1, 0.0),
        (2000, 1, None, 0.0),
    ])
    def test_degenerate_input_falls_back(self, bad, caplog):
        jd, degraded = julian_day_checked(*bad)
        assert jd == REFERENCE_JD
        assert degraded is True
        assert "falling back" in caplog.text

    def test_valid_input_not_degraded(self):
        _, degraded = julian_day_checked(1990, 5, 15, 14.0)
        assert degraded is False

    def test_round_trip_with_offset(self):
        jd = to_julian_day(1990, 2, 4, 2.0)
        assert from_julian_day(jd, 8.0) == datetime(1990, 2, 4, 10, 0)


class TestSolarLongitude:
    def test_range(self):
        for offset in range(0, 400, 7):
            lon = solar_longitude(2451545.0 + offset)
            assert 0.0 <= lon < 360.0

    def test_non_finite_falls_back_to_zero(self):
        assert solar_longitude(float("nan")) == 0.0

    @pytest.mark.parametrize("jd", [2415020.5, 2447892.5, 2451545.0, 2460000.5, 2488069.5])
    def test_close_to_swiss_ephemeris(self, jd):
        xx, _ = swe.calc_ut(jd, swe.SUN, swe.FLG_MOSEPH)
        diff = (solar_longitude(jd) - xx[0] + 180.0) % 360.0 - 180.0
        assert abs(diff) < 0.05


class TestSolarTerms:
    def test_twenty_four_terms(self):
        assert len(SOLAR_TERMS) == 24
        assert SOLAR_TERMS[0].chinese == "立春"
        assert SOLAR_TERMS[0].longitude == 315.0
        assert SOLAR_TERMS[3].longitude == 0.0  # 春分
        assert SOLAR_TERMS[-1].chinese == "大寒"

    def test_jie_terms(self):
        jie = [t.chinese for t in SOLAR_TERMS if t.is_jie]
        assert jie == ["立春", "惊蛰", "清明", "立夏", "芒种", "小暑",
                       "立秋", "白露", "寒露", "立冬", "大雪", "小寒"]

    def test_lookup(self):
        assert solar_term("立春") is SOLAR_TERMS[0]
        assert solar_term("Da Han") is SOLAR_TERMS[23]
        assert solar_term(5).chinese == "谷雨"

    @pytest.mark.parametrize("key", [24, -1, "spring", True])
    def test_lookup_rejects(self, key):
        with pytest.raises(ValidationError) as exc:
            solar_term(key)
        assert exc.value.field == "solar_term"

    def test_li_chun_1990(self):
        assert solar_term_time(1990, "立春").date() == date(1990, 2, 4)

    @pytest.mark.parametrize("year, term, expected", [
        (2000, "春分", date(2000, 3, 20)),
        (2008, "白露", date(2008, 9, 7)),
        (1984, "惊蛰", date(1984, 3, 5)),
        (1986, "小寒", date(1987, 1, 6)),
        (2024, "冬至", date(2024, 12, 21)),
    ])
    def test_known_dates(self, year, term, expected):
        assert solar_term_time(year, term).date() == expected

    @pytest.mark.parametrize("term", [0, 3, 9, 15, 21, 23])
    def test_longitude_reached(self, term):
        t = SOLAR_TERMS[term]
        jd, degraded = solar_term_jd(1990, t)
        assert not degraded
        diff = (solar_longitude(jd) - t.longitude + 180.0) % 360.0 - 180.0
        assert abs(diff) < 0.1

    @pytest.mark.parametrize("term", [0, 6, 12, 18])
    def test_matches_ephemeris_within_hours(self, term):
        t = SOLAR_TERMS[term]
        jd, _ = solar_term_jd(2010, t)
        xx, _ = swe.calc_ut(jd, swe.SUN, swe.FLG_MOSEPH)
        diff = (xx[0] - t.longitude + 180.0) % 360.0 - 180.0
        # the Sun moves about 1° per day
        assert abs(diff) < 0.05

    def test_budget_exhausted_returns_estimate(self):
        exact, _ = solar_term_jd(1990, SOLAR_TERMS[0])
        # six halvings of the 32-day window leave the best midpoint within half a day
        jd, degraded = solar_term_jd(1990, SOLAR_TERMS[0], tolerance=0.0, max_iterations=6)
        assert not degraded
        assert math.isfinite(jd)
        assert abs(jd - exact) < 1.0


class TestSolarTermTable:
    def test_terms_chronological(self, calendar):
        events = calendar.terms_for(1990)
        moments = [e.moment for e in events]
        assert moments == sorted(moments)
        assert events[0].term.chinese == "立春"
        assert events[-1].moment.year == 1991  # 大寒 falls in January

    def test_cache_is_filled(self):
        cache = {}
        table = SolarTermTable(cache=cache)
        first = table.terms_for(1990)
        assert cache[1990] is first
        assert table.terms_for(1990) is first

    def test_current_and_next(self, calendar):
        moment = datetime(1990, 5, 15, 14)
        assert calendar.current_term(moment).term.chinese == "立夏"
        assert calendar.next_term(moment).term.chinese == "小满"
        assert calendar.previous_jie(moment).term.chinese == "立夏"
        assert calendar.next_jie(moment).term.chinese == "芒种"

    def test_before_li_chun_uses_previous_solar_year(self, calendar):
        event = calendar.current_term(datetime(1990, 1, 25))
        assert event.term.chinese == "大寒"
        assert event.solar_year == 1989

    def test_early_january(self, calendar):
        event = calendar.current_term(datetime(1990, 1, 2))
        assert event.term.chinese == "冬至"
        assert event.solar_year == 1989

    def test_next_after_last_term(self, calendar):
        event = calendar.next_term(datetime(1990, 1, 25))
        assert event.term.chinese == "立春"
        assert event.solar_year == 1990

    def test_module_helpers(self):
        assert current_solar_term(datetime(2000, 3, 25)).term.chinese == "春分"
        assert next_solar_term(datetime(2000, 3, 25)).term.chinese == "清明"


class TestHelpers:
    def test_days_between(self):
        assert days_between(datetime(2000, 1, 1), datetime(2000, 3, 1)) == 60
        assert days_between(datetime(2000, 1, 2), datetime(2000, 1, 1)) == -1
        assert days_between(datetime(2000, 1, 1, 12), datetime(2000, 1, 2)) == 0

    def test_lmt_correction(self):
        assert lmt_correction(108.37) == pytest.approx(-46.52)
        assert lmt_correction(120.0) == 0.0

    def test_apply_lmt(self):
        assert apply_lmt(datetime(2000, 1, 1, 12), 105.0) == datetime(2000, 1, 1, 11)

    def test_lmt_correction_other_zone(self):
        # New York (74.006°W) lies east of the UTC-5 meridian, so local mean time runs ahead
        assert lmt_correction(-74.006, -5.0) == pytest.approx(3.976)

    def test_shift_offset(self):
        assert shift_offset(datetime(2024, 2, 4, 10), -5.0, 8.0) == datetime(2024, 2, 4, 23)
        assert shift_offset(datetime(2024, 2, 4, 17), 9.0, 8.0) == datetime(2024, 2, 4, 16)


class TestResolveBirthTime:
    def test_without_place_frames_coincide(self):
        clock = datetime(1990, 5, 15, 14)
        birth = resolve_birth_time(clock)
        assert birth.local_mean == birth.table_time == clock

    def test_place_in_table_zone(self):
        # Lhasa keeps UTC+8: the instant is unchanged, only the solar clock moves
        birth = resolve_birth_time(datetime(2024, 2, 4, 17, 30), 91.1, 8.0, 8.0)
        assert birth.table_time == datetime(2024, 2, 4, 17, 30)
        assert birth.local_mean.hour == 15

    def test_place_in_other_zone(self):
        birth = resolve_birth_time(datetime(2024, 2, 4, 10), -74.006, -5.0, 8.0)
        assert birth.table_time == datetime(2024, 2, 4, 23)
        assert datetime(2024, 2, 4, 10, 3) < birth.local_mean < datetime(2024, 2, 4, 10, 5)
