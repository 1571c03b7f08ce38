"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str = "low"
    openai_store: bool = False
    fdc_api_key: str | None = None
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    open_food_facts_base_url: str = "https://world.openfoodfacts.org"
    environment: str = _ENVIRONMENT

    template_match_threshold: float = 0.7
    pattern_similarity_threshold: float = 0.7
    food_staleness_months: int = 18
    product_staleness_months: int = 36
    ocr_confidence_cutoff: int = 70
    registry_fuzzy_min_times_logged: int = 3
    registry_fuzzy_limit: int = 50
    catalog_candidate_limit: int = 25
    pattern_time_window_minutes: int = 30
    pattern_min_occurrences: int = 2
    pattern_lookback_days: int = 30
    medication_ddd_warning_ratio: float = 1.5

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
