import pytest

from bazi_match.astro_calendar import SolarTermTable
from bazi_match.config import DEFAULT_CONFIG
from bazi_match.create_chart import compute_chart


@pytest.fixture(scope="session")
def calendar():
    """Solar term table with a cache shared across the test session."""
    return SolarTermTable.from_config(DEFAULT_CONFIG, cache={})


@pytest.fixture
def chart_1990(calendar):
    """1990-05-15 14:00, male: 庚午 辛巳 庚辰 癸未."""
    return compute_chart(1990, 5, 15, 14, sex="male", calendar=calendar)


@pytest.fixture
def chart_1990_female(calendar):
    return compute_chart(1990, 5, 15, 14, sex="female", calendar=calendar)
