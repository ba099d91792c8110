"""Counterpart recommendation search"""

from dataclasses import replace

import pytest

from bazi_match.bazi import stem
from bazi_match.config import DEFAULT_CONFIG
from bazi_match.create_chart import Sex, compute_chart
from bazi_match.recommend import (
    SEASONAL_PROBES, SPOUSE_DAY_MASTERS, DemographicPolicy, advantages, candidate_day_masters,
    candidate_years, considerations, probe_day, recommend_counterparts,
)
from bazi_match.compatibility import score_compatibility

POLICY_2020 = DemographicPolicy(reference_year=2020)


class TestDemographicPolicy:
    def test_male_searches_younger_first(self):
        assert candidate_years(1990, Sex.MALE, POLICY_2020) == [1990, 1991, 1992, 1993, 1994, 1995]

    def test_female_searches_older_first(self):
        assert candidate_years(1990, Sex.FEMALE, POLICY_2020) == [1985, 1986, 1987, 1988, 1989, 1990]

    def test_unknown_sex_is_symmetric(self):
        assert candidate_years(1990, None, POLICY_2020) == list(range(1985, 1996))

    def test_bias_can_be_switched_off(self):
        policy = replace(POLICY_2020, sex_bias=False)
        assert candidate_years(1990, Sex.MALE, policy) == list(range(1985, 1996))

    def test_widens_when_biased_range_is_empty(self):
        # 1995-2000 are all under 20 in 2014
        policy = DemographicPolicy(reference_year=2014)
        assert candidate_years(1995, Sex.MALE, policy) == [1990, 1991, 1992, 1993, 1994]

    def test_age_band(self):
        assert candidate_years(1990, Sex.MALE, DemographicPolicy(reference_year=1950)) == []

    def test_supported_year_range(self):
        policy = DemographicPolicy(reference_year=2130, min_age=20, max_age=40)
        assert max(candidate_years(2098, None, policy)) == 2100


class TestCandidateDayMasters:
    def test_dominant_element_switches_to_balancing_stems(self, chart_1990):
        # metal is 6.3 / 13.3 of the chart: fire restrains it, water drains it
        stems = candidate_day_masters(chart_1990)
        assert [s.chinese for s in stems] == ["丙", "丁", "壬", "癸"]

    def test_static_table_below_threshold(self, chart_1990):
        config = replace(DEFAULT_CONFIG, dominant_element_threshold=0.9)
        stems = candidate_day_masters(chart_1990, config)
        assert [s.chinese for s in stems] == list(SPOUSE_DAY_MASTERS["庚"])

    def test_static_table_covers_every_stem(self):
        assert len(SPOUSE_DAY_MASTERS) == 10


class TestProbes:
    def test_probe_day_hits_every_stem(self):
        for target in "甲乙丙丁戊己庚辛壬癸":
            day = probe_day(1990, 5, stem(target))
            assert 10 <= day <= 19

    def test_probe_months_after_jie(self):
        assert [month for _, month, _ in SEASONAL_PROBES] == [2, 5, 4, 8, 11]


class TestSearch:
    def test_capped_and_ranked(self, chart_1990):
        ranked = recommend_counterparts(chart_1990, policy=POLICY_2020)
        assert len(ranked) == DEFAULT_CONFIG.max_candidates
        assert [c.rank for c in ranked] == [1, 2, 3, 4, 5]
        scores = [c.compatibility.overall_score for c in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_candidates_respect_constraints(self, chart_1990):
        wanted = {s.chinese for s in candidate_day_masters(chart_1990)}
        for c in recommend_counterparts(chart_1990, policy=POLICY_2020):
            assert c.chart.day_master.chinese in wanted
            assert c.chart.sex is Sex.FEMALE
            assert 1990 <= c.chart.request.year <= 1995
            assert 10 <= c.chart.request.day <= 19

    def test_scores_match_scorer(self, chart_1990):
        for c in recommend_counterparts(chart_1990, policy=POLICY_2020):
            assert c.compatibility == score_compatibility(chart_1990, c.chart)

    def test_deterministic(self, chart_1990):
        first = recommend_counterparts(chart_1990, policy=POLICY_2020)
        second = recommend_counterparts(chart_1990, policy=POLICY_2020)
        assert [c.chart.labels for c in first] == [c.chart.labels for c in second]

    def test_sex_argument_overrides_chart(self, chart_1990):
        ranked = recommend_counterparts(chart_1990, sex="female", policy=POLICY_2020)
        assert all(c.chart.sex is Sex.MALE for c in ranked)
        assert all(1985 <= c.chart.request.year <= 1990 for c in ranked)

    def test_empty_result(self, chart_1990):
        assert recommend_counterparts(chart_1990, policy=DemographicPolicy(reference_year=1950)) == []

    @pytest.mark.parametrize("cap", [0, 1, 3])
    def test_custom_cap(self, chart_1990, cap):
        config = replace(DEFAULT_CONFIG, max_candidates=cap)
        assert len(recommend_counterparts(chart_1990, policy=POLICY_2020, config=config)) == cap

    def test_to_dict(self, chart_1990):
        data = recommend_counterparts(chart_1990, policy=POLICY_2020)[0].to_dict()
        assert data["rank"] == 1
        assert data["advantages"]
        assert data["considerations"]
        assert data["chart"]["birth"]["sex"] == "female"


def test_advantage_and_consideration_fallbacks(calendar):
    a = compute_chart(1990, 5, 15, 14, calendar=calendar)
    result = score_compatibility(a, a)
    # only the pillars clear 70, nothing falls under 50
    assert advantages(result) == ["Pillars are coordinated, a harmonious family life"]
    assert considerations(result) == ["A good match, keep communicating"]
