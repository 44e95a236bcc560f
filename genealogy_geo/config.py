"""
Central configuration loaded from environment variables with sensible defaults.
Confidence tiers and thresholds live here so they can be tuned against real
reference data without touching the matching code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

_BUNDLED_DATA = Path(__file__).resolve().parent / "data" / "country_matching.json"


@dataclass(frozen=True)
class MatchingConfig:
    exact_confidence: float = float(os.getenv("MATCH_EXACT_CONFIDENCE", "1.0"))
    alias_confidence: float = float(os.getenv("MATCH_ALIAS_CONFIDENCE", "0.95"))
    # Pattern scores are clamped into [floor, cap]
    pattern_floor: float = float(os.getenv("MATCH_PATTERN_FLOOR", "0.6"))
    pattern_cap: float = float(os.getenv("MATCH_PATTERN_CAP", "0.85"))
    region_cap: float = float(os.getenv("MATCH_REGION_CAP", "0.6"))
    fuzzy_min_score: float = float(os.getenv("MATCH_FUZZY_MIN_SCORE", "0.5"))
    fuzzy_delta: float = float(os.getenv("MATCH_FUZZY_DELTA", "0.05"))
    # Upper bound on surfaces scanned per fuzzy query
    fuzzy_max_candidates: int = int(os.getenv("MATCH_FUZZY_MAX_CANDIDATES", "5000"))
    historical_bonus: float = float(os.getenv("MATCH_HISTORICAL_BONUS", "0.1"))
    # Pattern/region/fuzzy hits below this are not accepted
    accept_floor: float = float(os.getenv("MATCH_ACCEPT_FLOOR", "0.5"))
    unresolved_threshold: float = float(os.getenv("MATCH_UNRESOLVED_THRESHOLD", "0.5"))
    min_plausible_year: int = int(os.getenv("MATCH_MIN_YEAR", "1"))
    max_plausible_year: int = int(os.getenv("MATCH_MAX_YEAR", "2100"))


@dataclass(frozen=True)
class ReferenceDataConfig:
    path: str = os.getenv("COUNTRY_DATA_PATH", str(_BUNDLED_DATA))


@dataclass(frozen=True)
class BatchConfig:
    workers: int = int(os.getenv("BATCH_WORKERS", "4"))
    chunk_size: int = int(os.getenv("BATCH_CHUNK_SIZE", "500"))
    # How many unresolved places the CLI prints after a batch
    report_sample: int = int(os.getenv("BATCH_REPORT_SAMPLE", "20"))


@dataclass(frozen=True)
class APIConfig:
    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = int(os.getenv("API_PORT", "8000"))
    max_batch_size: int = int(os.getenv("API_MAX_BATCH_SIZE", "10000"))


@dataclass(frozen=True)
class Settings:
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    reference: ReferenceDataConfig = field(default_factory=ReferenceDataConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    env: str = os.getenv("APP_ENV", "development")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
