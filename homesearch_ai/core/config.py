"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from typing import List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Default Values
# =====================================================================

DEFAULT_RECOGNIZED_AMENITIES: List[str] = [
    "airport",
    "bank",
    "bus_station",
    "cafe",
    "church",
    "convenience_store",
    "dentist",
    "doctor",
    "fire_station",
    "gas_station",
    "gym",
    "hospital",
    "library",
    "movie_theater",
    "museum",
    "park",
    "parking",
    "pharmacy",
    "police",
    "primary_school",
    "restaurant",
    "school",
    "secondary_school",
    "shopping_mall",
    "stadium",
    "store",
    "subway_station",
    "supermarket",
    "train_station",
    "transit_station",
    "university",
    "veterinary_care",
    "zoo",
]


# =====================================================================
# Grouped Configuration Models
# =====================================================================


class LLMConfig(BaseModel):
    """Language model configuration."""

    model: str = Field(
        default="openai:gpt-4o-mini",
        alias="HOMESEARCH_LLM_MODEL",
        description="pydantic-ai model identifier used by every model call",
    )
    temperature: float = Field(
        default=0.2, alias="HOMESEARCH_LLM_TEMPERATURE", description="Sampling temperature (0.0-2.0)"
    )

    model_config = {"populate_by_name": True}


class SearchConfig(BaseModel):
    """Search pipeline tuning."""

    min_query_length: int = Field(
        default=10,
        alias="HOMESEARCH_MIN_QUERY_LENGTH",
        description="Minimum length of a free-text query when it is the only search signal",
    )
    places_radius_meters: int = Field(
        default=20000,
        alias="HOMESEARCH_PLACES_RADIUS_METERS",
        description="Radius used for nearby place lookups",
    )
    recognized_amenities: List[str] = Field(
        default_factory=lambda: list(DEFAULT_RECOGNIZED_AMENITIES),
        alias="HOMESEARCH_RECOGNIZED_AMENITIES",
        description="Place categories accepted as amenities",
    )
    polish_response: bool = Field(
        default=False,
        alias="HOMESEARCH_POLISH_RESPONSE",
        description="Apply the response capability to the merged answer",
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="HOMESEARCH_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed",
        description="Log format (simple, detailed, json)",
        alias="HOMESEARCH_LOG_FORMAT",
    )
    log_file_dir: str = Field(default="logs", description="Directory for log files", alias="HOMESEARCH_LOG_FILE_DIR")
    enable_file_logging: bool = Field(
        default=False,
        description="Write logs to a file under log_file_dir",
        alias="HOMESEARCH_ENABLE_FILE_LOGGING",
    )

    # =====================================================================
    # Language Model Configuration
    # =====================================================================
    llm_model: str = Field(default="openai:gpt-4o-mini", alias="HOMESEARCH_LLM_MODEL")
    llm_temperature: float = Field(default=0.2, alias="HOMESEARCH_LLM_TEMPERATURE")

    # =====================================================================
    # Search Configuration
    # =====================================================================
    min_query_length: int = Field(default=10, alias="HOMESEARCH_MIN_QUERY_LENGTH")
    places_radius_meters: int = Field(default=20000, alias="HOMESEARCH_PLACES_RADIUS_METERS")
    recognized_amenities: List[str] = Field(
        default_factory=lambda: list(DEFAULT_RECOGNIZED_AMENITIES),
        alias="HOMESEARCH_RECOGNIZED_AMENITIES",
    )
    polish_response: bool = Field(default=False, alias="HOMESEARCH_POLISH_RESPONSE")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def llm(self) -> LLMConfig:
        """Get language model configuration from environment variables."""
        return LLMConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def search(self) -> SearchConfig:
        """Get search pipeline configuration from environment variables."""
        return SearchConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
