import json

import pytest

from bazi_match.run import main

BIRTH = ["--birth-date", "1990-05-15", "--birth-time", "14:00"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("START_AGE_STRATEGY", "DECADE_COUNT", "UTC_OFFSET_HOURS", "FIXED_START_AGE",
                 "ANNUAL_END_AGE", "MAX_CANDIDATES"):
        monkeypatch.delenv("BAZI_" + name, raising=False)


def test_chart(capsys):
    assert main(["chart"] + BIRTH) == 0
    data = json.loads(capsys.readouterr().out)
    assert [data["pillars"][p]["label"] for p in ("year", "month", "day", "hour")] == \
        ["庚午", "辛巳", "庚辰", "癸未"]
    assert data["fortune"]["social"] == "social.favourable"
    assert "decades" not in data


def test_chart_with_cycles(capsys, monkeypatch):
    monkeypatch.setenv("BAZI_START_AGE_STRATEGY", "fixed")
    assert main(["chart"] + BIRTH + ["--gender", "male", "--cycles"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["decades"][0]["pillar"] == "壬午"
    assert data["annual"][0]["year"] == 1998


def test_match(capsys):
    argv = ["match"] + BIRTH + ["--gender", "male",
                                "--partner-birth-date", "1990-05-15", "--partner-birth-time", "14:00",
                                "--partner-gender", "female"]
    assert main(argv) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["compatibility"]["overall_score"] == 66
    assert data["partner"]["birth"]["sex"] == "female"


def test_recommend(capsys):
    argv = ["recommend"] + BIRTH + ["--gender", "male", "--reference-year", "2020"]
    assert main(argv) == 0
    data = json.loads(capsys.readouterr().out)
    assert len(data["candidates"]) == 5


def test_validation_error_names_field(capsys):
    assert main(["chart", "--birth-date", "1990-13-15", "--birth-time", "14:00"]) == 2
    assert "month" in capsys.readouterr().err


def test_malformed_date(capsys):
    assert main(["chart", "--birth-date", "1990/05/15", "--birth-time", "14:00"]) == 2
    assert "birth_date" in capsys.readouterr().err


def test_cycles_need_gender(capsys):
    assert main(["chart"] + BIRTH + ["--cycles"]) == 2
    assert "sex" in capsys.readouterr().err
