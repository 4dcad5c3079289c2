"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class LLMConfig(BaseSettings):
    """LLM provider configuration for the extraction and revision oracles."""

    model_config = {"env_prefix": "GEOMATRICULA_LLM_"}

    provider: str = "openai"
    base_url: str = "https://ai.gateway.lovable.dev"
    model: str = "google/gemini-2.5-flash"
    vision_model: str = "google/gemini-2.5-pro"
    api_key: str | None = None
    timeout_seconds: int = 60
    max_retries: int = 1
    max_tokens: int = 4096
    temperature: float = 0.3
    top_p: float | None = None


class AuditConfig(BaseSettings):
    """Audit logging configuration."""

    model_config = {"env_prefix": "GEOMATRICULA_AUDIT_"}

    log_dir: str = "data/audit"
    log_file: str = "segment_audit.jsonl"


class GeodesyConfig(BaseSettings):
    """Georeferencing defaults used when a deed carries no usable UTM anchor."""

    model_config = {"env_prefix": "GEOMATRICULA_GEODESY_"}

    default_zone: int = 23
    default_hemisphere: str = "S"
    # São Paulo, used when no anchor can be derived
    default_center_lat: float = -23.5505
    default_center_lng: float = -46.6333
    degrees_per_meter: float = 0.00001


class ExportConfig(BaseSettings):
    """DXF / KML export configuration."""

    model_config = {"env_prefix": "GEOMATRICULA_EXPORT_"}

    dxf_version: str = "R2000"
    center_dxf: bool = False
    neighbor_max_chars: int = 40


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "GEOMATRICULA_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    llm: LLMConfig = Field(default_factory=LLMConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    geodesy: GeodesyConfig = Field(default_factory=GeodesyConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
