"""
Configuration for the smart search pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if it exists
project_root = Path(__file__).resolve().parents[2]
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)


EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "all-MiniLM-L6-v2")
PROTOTYPES_PATH = os.getenv("PROTOTYPES_PATH")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


@dataclass(frozen=True)
class SearchConfig:
    """Configuration for smart search."""

    candidate_count: int = 50
    result_count: int = 10
    min_score: float = 0.3
    candidate_floor: float = 0.1

    @classmethod
    def from_env(cls) -> "SearchConfig":
        """Build config from SEARCH_* environment variables, falling back to defaults."""
        return cls(
            candidate_count=_env_int("SEARCH_CANDIDATE_COUNT", cls.candidate_count),
            result_count=_env_int("SEARCH_RESULT_COUNT", cls.result_count),
            min_score=_env_float("SEARCH_MIN_SCORE", cls.min_score),
            candidate_floor=_env_float("SEARCH_CANDIDATE_FLOOR", cls.candidate_floor),
        )
