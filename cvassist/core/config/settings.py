"""Typed configuration sections with calibrated defaults.

The numeric defaults below were chosen empirically against the curated
skills dataset. Override them through config/default.yaml or CVASSIST_*
environment variables rather than editing them in place.
"""

from typing import Any

from pydantic import BaseModel, Field

from .loader import load_config

# Search / ranking
DEFAULT_TOP_K = 3
TOP_K_EXTENDED = 5
TOP_K_SYNTHESIS = 10
CANDIDATE_POOL = 10
HIGH_CONFIDENCE = 0.80
MEDIUM_CONFIDENCE = 0.65
BACKEND_TIMEOUT_SECONDS = 5.0

# Experience boost shelves: (min_years, min_level, factor), highest factor wins
EXPERIENCE_BOOST_SHELVES: list[tuple[float, str, float]] = [
    (15, "Expert", 1.15),
    (10, "Expert", 1.10),
    (8, "Advanced", 1.05),
]
PROFICIENCY_LEVELS = ["Beginner", "Intermediate", "Advanced", "Expert"]

# Daily inference budget (neurons)
DAILY_COST_LIMIT = 9500.0
INFERENCE_COSTS: dict[str, float] = {
    "llama-3.1-70b-instruct": 5.0,
    "mistral-7b-instruct": 75.0,
    "bge-base-en-v1.5": 0.6,
    "llama-3.2-3b-instruct": 35.0,
}
DEFAULT_COST_KIND = "llama-3.1-70b-instruct"

# Cache
CACHE_TTL_SECONDS = 3600
CACHE_PREFIX = "query:"

# Indexing
INDEX_BATCH_SIZE = 10
INDEX_LOCK_TTL_SECONDS = 120
INDEX_MAX_CONSECUTIVE_FAILURES = 3

# Inference / shaping
MAX_OUTPUT_TOKENS = 80
INFERENCE_TIMEOUT_SECONDS = 30.0
MAX_REPLY_SENTENCES = 2
STOP_SEQUENCES = ["I've worked", "My expertise spans", "Additionally,", "\n\n"]


class SearchSettings(BaseModel):
    top_k: int = Field(DEFAULT_TOP_K, ge=1, le=TOP_K_SYNTHESIS)
    candidate_pool: int = Field(CANDIDATE_POOL, ge=1)
    high_confidence: float = HIGH_CONFIDENCE
    medium_confidence: float = MEDIUM_CONFIDENCE
    backend_timeout_seconds: float = Field(BACKEND_TIMEOUT_SECONDS, gt=0)


class BoostShelf(BaseModel):
    min_years: float = Field(..., ge=0)
    min_level: str
    factor: float = Field(..., ge=1.0)


class RankingSettings(BaseModel):
    shelves: list[BoostShelf] = Field(
        default_factory=lambda: [
            BoostShelf(min_years=y, min_level=lvl, factor=f) for y, lvl, f in EXPERIENCE_BOOST_SHELVES
        ]
    )
    levels: list[str] = Field(default_factory=lambda: list(PROFICIENCY_LEVELS))


class QuotaSettings(BaseModel):
    daily_limit: float = Field(DAILY_COST_LIMIT, gt=0)
    costs: dict[str, float] = Field(default_factory=lambda: dict(INFERENCE_COSTS))
    default_kind: str = DEFAULT_COST_KIND
    key_prefix: str = "ai:quota:daily"


class CacheSettings(BaseModel):
    enabled: bool = True
    ttl_seconds: int = Field(CACHE_TTL_SECONDS, gt=0)
    prefix: str = CACHE_PREFIX


class IndexingSettings(BaseModel):
    batch_size: int = Field(INDEX_BATCH_SIZE, ge=1)
    lock_ttl_seconds: int = Field(INDEX_LOCK_TTL_SECONDS, gt=0)
    max_consecutive_failures: int = Field(INDEX_MAX_CONSECUTIVE_FAILURES, ge=1)


class WindowSettings(BaseModel):
    enabled: bool = True
    timezone: str = "Europe/London"
    start_hour: int = Field(8, ge=0, le=23)
    end_hour: int = Field(20, ge=1, le=24)
    weekdays_only: bool = True
    bypass_phrase: str | None = None


class ValidationSettings(BaseModel):
    min_length: int = 10
    max_length: int = 200
    min_alphabetic_ratio: float = 0.50
    min_common_word_ratio: float = 0.35
    min_vowel_ratio: float = 0.15
    max_vowel_ratio: float = 0.60
    min_english_word_ratio: float = 0.20
    max_repeated_runs: int = 2


class ResponseSettings(BaseModel):
    max_sentences: int = Field(MAX_REPLY_SENTENCES, ge=1)
    max_words: int = 60
    max_output_tokens: int = MAX_OUTPUT_TOKENS
    inference_timeout_seconds: float = Field(INFERENCE_TIMEOUT_SECONDS, gt=0)
    stop_sequences: list[str] = Field(default_factory=lambda: list(STOP_SEQUENCES))
    subject_name: str = "the candidate"


class ProjectPattern(BaseModel):
    pattern: str
    name: str


class OpenAISettings(BaseModel):
    chat_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 768
    timeout: int = 30
    max_retries: int = 2


class StorageSettings(BaseModel):
    database_path: str = "data/skills.db"
    kv_path: str = "data/kv.db"
    chroma_mode: str = "memory"
    chroma_directory: str | None = None
    chroma_collection: str = "skills"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: str | None = None


class Settings(BaseModel):
    """Validated application settings."""

    search: SearchSettings = Field(default_factory=SearchSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    quota: QuotaSettings = Field(default_factory=QuotaSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    indexing: IndexingSettings = Field(default_factory=IndexingSettings)
    window: WindowSettings = Field(default_factory=WindowSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    response: ResponseSettings = Field(default_factory=ResponseSettings)
    projects: list[ProjectPattern] = Field(default_factory=list)
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def get_settings(config: dict[str, Any] | None = None) -> Settings:
    """Build settings from a loaded config dict (loads the hierarchy if omitted)."""
    if config is None:
        config = load_config()
    return Settings.model_validate(config)
