"""
Engine configuration.

Every tunable constant of the engine lives here so the rule tables, scorer
and search all read the same values. The defaults reproduce the product's
published behaviour; tests and callers may build their own EngineConfig with
dataclasses.replace().
"""

import os
from dataclasses import dataclass, replace

from bazi_match.errors import ValidationError


START_AGE_STRATEGIES = ("solar_term", "fixed")


@dataclass(frozen=True)
class EngineConfig:
    # Supported birth years (inclusive)
    min_year: int = 1900
    max_year: int = 2100

    # Civil time zone the solar terms are expressed in (China Standard Time)
    utc_offset_hours: float = 8.0

    # Solar-term root search
    term_tolerance_degrees: float = 1e-4
    term_max_iterations: int = 20

    # Five-element weights
    stem_weight: float = 1.0
    branch_main_weight: float = 0.6
    branch_secondary_weight: float = 0.3
    branch_residual_weight: float = 0.1
    day_master_bonus: float = 3.0

    # Strength buckets, as a share of the total weight
    strong_threshold: float = 0.25
    medium_threshold: float = 0.15

    # Decade cycles
    start_age_strategy: str = "solar_term"
    fixed_start_age: int = 8
    decade_count: int = 8
    annual_end_age: int = 100

    # Compatibility
    good_score_threshold: int = 70

    # Recommendation search
    max_candidates: int = 5
    dominant_element_threshold: float = 0.3

    def __post_init__(self):
        if self.start_age_strategy not in START_AGE_STRATEGIES:
            raise ValidationError("start_age_strategy", self.start_age_strategy,
                                  " | ".join(START_AGE_STRATEGIES))
        if self.min_year > self.max_year:
            raise ValidationError("min_year", self.min_year, f"<= max_year ({self.max_year})")
        if not 0 < self.medium_threshold <= self.strong_threshold < 1:
            raise ValidationError("strong_threshold", self.strong_threshold,
                                  "0 < medium_threshold <= strong_threshold < 1")
        if self.decade_count < 1:
            raise ValidationError("decade_count", self.decade_count, ">= 1")
        if self.max_candidates < 0:
            raise ValidationError("max_candidates", self.max_candidates, ">= 0")

    @property
    def hidden_stem_weights(self) -> tuple:
        """Weights of the main, secondary and residual hidden stems."""
        return (self.branch_main_weight, self.branch_secondary_weight, self.branch_residual_weight)

    @classmethod
    def from_env(cls, prefix: str = "BAZI_") -> "EngineConfig":
        """
        Build a config from environment variables.

        Recognised: BAZI_UTC_OFFSET_HOURS, BAZI_START_AGE_STRATEGY,
        BAZI_FIXED_START_AGE, BAZI_DECADE_COUNT, BAZI_ANNUAL_END_AGE,
        BAZI_MAX_CANDIDATES. Unset variables keep their defaults.
        """
        overrides = {}
        for name, cast in (
            ("utc_offset_hours", float),
            ("start_age_strategy", str),
            ("fixed_start_age", int),
            ("decade_count", int),
            ("annual_end_age", int),
            ("max_candidates", int),
        ):
            raw = os.getenv(prefix + name.upper(), "").strip()
            if not raw:
                continue
            try:
                overrides[name] = cast(raw)
            except ValueError:
                raise ValidationError(prefix + name.upper(), raw, cast.__name__) from None
        return replace(cls(), **overrides)


DEFAULT_CONFIG = EngineConfig()
