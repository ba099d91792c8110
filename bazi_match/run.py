"""
Command line interface.

Usage:
    bazi-match chart --birth-date YYYY-MM-DD --birth-time HH:MM [--gender GENDER] \
        [--latitude LAT --longitude LON] [--cycles]
    bazi-match match --birth-date ... --birth-time ... --gender ... \
        --partner-birth-date ... --partner-birth-time ... --partner-gender ... [--cycles]
    bazi-match recommend --birth-date ... --birth-time ... --gender GENDER \
        [--reference-year YEAR] [--span N] [--no-sex-bias]

Engine settings come from BAZI_* environment variables (see EngineConfig.from_env).
Output is JSON on stdout; validation errors go to stderr with exit status 2.
"""

import argparse
import json
import logging
import sys

from bazi_match.compatibility import score_compatibility
from bazi_match.config import EngineConfig
from bazi_match.create_chart import Chart, ChartRequest, chart_from_request
from bazi_match.elements import useful_element_advice
from bazi_match.errors import BaziError, ValidationError
from bazi_match.fortune import template_keys
from bazi_match.luck import annual_cycles_for_chart, compute_decade_cycles
from bazi_match.recommend import DemographicPolicy, recommend_counterparts

logger = logging.getLogger(__name__)


def _split(field_name: str, value: str, sep: str, parts: int) -> list:
    pieces = value.split(sep)
    if len(pieces) != parts or not all(p.strip() for p in pieces):
        raise ValidationError(field_name, value, "YYYY-MM-DD" if sep == "-" else "HH:MM")
    return pieces


def request_from_args(args, prefix: str = "") -> ChartRequest:
    """Build a ChartRequest from --birth-date/--birth-time style arguments."""
    birth_date = getattr(args, prefix + "birth_date")
    birth_time = getattr(args, prefix + "birth_time")
    year, month, day = _split(prefix + "birth_date", birth_date, "-", 3)
    hour, minute = _split(prefix + "birth_time", birth_time, ":", 2)

    data = {"year": year, "month": month, "day": day, "hour": hour, "minute": minute}
    gender = getattr(args, prefix + "gender", None)
    if gender is not None:
        data["sex"] = gender
    latitude = getattr(args, prefix + "latitude", None)
    longitude = getattr(args, prefix + "longitude", None)
    if latitude is not None or longitude is not None:
        data["latitude"] = latitude
        data["longitude"] = longitude
    return ChartRequest.from_mapping(data)


def _add_birth_arguments(parser, prefix: str = "", gender_required: bool = False):
    flag = "--" + prefix.replace("_", "-")
    parser.add_argument(flag + "birth-date", required=True, dest=prefix + "birth_date")
    parser.add_argument(flag + "birth-time", required=True, dest=prefix + "birth_time")
    parser.add_argument(flag + "gender", required=gender_required, dest=prefix + "gender",
                        choices=["male", "female"])
    parser.add_argument(flag + "latitude", type=float, dest=prefix + "latitude")
    parser.add_argument(flag + "longitude", type=float, dest=prefix + "longitude")


def _cycles(chart: Chart, config: EngineConfig):
    decades = compute_decade_cycles(chart, config=config)
    annual = annual_cycles_for_chart(chart, decades, config)
    return decades, annual


def cmd_chart(args, config: EngineConfig) -> dict:
    chart = chart_from_request(request_from_args(args), config)
    result = chart.to_dict()
    result["advice"] = useful_element_advice(chart.day_master, chart.elements)
    result["fortune"] = template_keys(chart.ten_gods)
    if args.cycles:
        decades, annual = _cycles(chart, config)
        result["decades"] = [d.to_dict() for d in decades]
        result["annual"] = [a.to_dict() for a in annual]
    return result


def cmd_match(args, config: EngineConfig) -> dict:
    chart_a = chart_from_request(request_from_args(args), config)
    chart_b = chart_from_request(request_from_args(args, "partner_"), config)
    decades_a = decades_b = None
    if args.cycles:
        decades_a = compute_decade_cycles(chart_a, config=config)
        decades_b = compute_decade_cycles(chart_b, config=config)
    result = score_compatibility(chart_a, chart_b, decades_a, decades_b, config)
    return {
        "chart": chart_a.to_dict(),
        "partner": chart_b.to_dict(),
        "compatibility": result.to_dict(),
    }


def cmd_recommend(args, config: EngineConfig) -> dict:
    chart = chart_from_request(request_from_args(args), config)
    policy = DemographicPolicy(span=args.span, reference_year=args.reference_year,
                               sex_bias=not args.no_sex_bias)
    ranked = recommend_counterparts(chart, policy=policy, config=config)
    return {
        "chart": chart.to_dict(),
        "candidates": [c.to_dict() for c in ranked],
    }


COMMANDS = {
    "chart": cmd_chart,
    "match": cmd_match,
    "recommend": cmd_recommend,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bazi-match",
                                     description="Four Pillars charts, luck cycles and compatibility.")
    parser.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    chart = sub.add_parser("chart", help="compute one chart")
    _add_birth_arguments(chart)
    chart.add_argument("--cycles", action="store_true",
                       help="include decade and annual cycles (needs --gender)")

    match = sub.add_parser("match", help="score two charts against each other")
    _add_birth_arguments(match)
    _add_birth_arguments(match, "partner_")
    match.add_argument("--cycles", action="store_true",
                       help="include cycle synchrony (needs both genders)")

    recommend = sub.add_parser("recommend", help="search counterpart charts")
    _add_birth_arguments(recommend, gender_required=True)
    recommend.add_argument("--reference-year", dest="reference_year", type=int, default=None)
    recommend.add_argument("--span", type=int, default=5)
    recommend.add_argument("--no-sex-bias", dest="no_sex_bias", action="store_true")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = EngineConfig.from_env()
        result = COMMANDS[args.command](args, config)
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except BaziError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
