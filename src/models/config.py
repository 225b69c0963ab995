from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.checkpoint import CheckpointConfig


class StoreSettings(BaseModel):
    """Remote data store (Supabase / PostgREST) settings"""

    url: str = Field(..., min_length=1, description="Project URL, e.g. https://xyz.supabase.co")
    api_key: str = Field(..., min_length=1)
    table: str = "users"
    key_field: str = "fid"
    select_fields: List[str] = Field(
        default_factory=lambda: [
            "fid",
            "user_name",
            "description",
            "follower_count",
            "following_count",
            "channels_following",
            "channels_member",
            "embeddings",
            "summary",
        ]
    )
    related_table: str = "casts"
    related_select_fields: List[str] = Field(default_factory=lambda: ["fid", "casts"])
    request_timeout_seconds: float = Field(30.0, gt=0, le=600)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Store url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("select_fields")
    @classmethod
    def validate_select_fields(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("select_fields cannot be empty")
        return v


class EnrichmentSettings(BaseModel):
    """OpenAI-compatible summary + embedding settings"""

    model_config = ConfigDict(protected_namespaces=())

    api_key: str = Field(..., min_length=1)
    base_url: str = "https://api.openai.com/v1"
    summary_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    temperature: float = Field(0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(200, ge=16, le=4096)
    max_casts: int = Field(10, ge=0, le=100)  # Casts included in the prompt
    request_timeout_seconds: float = Field(60.0, gt=0, le=600)


class BatchSettings(BaseModel):
    """Pagination, pacing and retry constants for the batch pipeline"""

    page_size: int = Field(25, ge=1, le=1000)
    delay_between_requests_ms: int = Field(2000, ge=0, le=600_000)
    max_retries: int = Field(3, ge=0, le=10)
    parallel_limit: int = Field(3, ge=1, le=50)
    consecutive_error_threshold: int = Field(3, ge=1, le=100)
    progress_interval_seconds: float = Field(5.0, ge=0)


class LoggingSettings(BaseModel):
    level: str = Field("INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    json_output: bool = True


class PipelineConfig(BaseModel):
    """Root configuration for a backfill run"""

    store: StoreSettings
    enrichment: EnrichmentSettings
    batch: BatchSettings = Field(default_factory=BatchSettings)
    checkpoint: CheckpointConfig = Field(default_factory=CheckpointConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics_textfile: Optional[str] = None
