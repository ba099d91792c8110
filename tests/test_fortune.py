from bazi_match.bazi import TenGod, TenGodRelation, stem
from bazi_match.fortune import LIFE_AREAS, FortuneOutlook, fortune_outlook, template_keys


def test_chart_outlook(chart_1990):
    outlook = fortune_outlook(chart_1990.ten_gods)
    assert set(outlook) == set(LIFE_AREAS)
    # 比肩 劫财 伤官
    assert outlook["social"] is FortuneOutlook.FAVOURABLE
    assert outlook["study"] is FortuneOutlook.FAVOURABLE
    assert outlook["wealth"] is FortuneOutlook.STEADY
    assert outlook["marriage"] is FortuneOutlook.STEADY


def test_direct_officer_opens_career_and_marriage():
    outlook = fortune_outlook([TenGod(stem("辛"), TenGodRelation.DIRECT_OFFICER)])
    assert outlook["career"] is FortuneOutlook.FAVOURABLE
    assert outlook["marriage"] is FortuneOutlook.FAVOURABLE


def test_empty_list_is_steady():
    assert set(fortune_outlook([]).values()) == {FortuneOutlook.STEADY}


def test_template_keys(chart_1990):
    keys = template_keys(chart_1990.ten_gods)
    assert keys["wealth"] == "wealth.steady"
    assert keys["social"] == "social.favourable"
