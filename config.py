"""Configuration for the pizza service telemetry exporters"""
import socket
from pathlib import Path
from typing import Dict, Literal, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Environment-based settings for metrics export and log shipping"""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # Metrics (OTLP over HTTP/JSON)
    metrics_url: str = Field(..., description="OTLP HTTP metrics endpoint (required)")
    metrics_api_key: str = Field(..., description="Bearer token for the metrics endpoint")
    metrics_source: str = Field(default="jwt-pizza-service", description="Value of the 'source' attribute")
    export_interval: float = Field(default=10.0, gt=0, description="Seconds between metric exports")

    # Logs (Loki push)
    logging_url: str = Field(..., description="Loki push endpoint (required)")
    logging_user_id: str = Field(..., description="Loki user id")
    logging_api_key: str = Field(..., description="Loki API key")
    logging_source: str = Field(default="jwt-pizza-service", description="Value of the 'component' label")

    # Transport hardening
    http_timeout: float = Field(default=5.0, gt=0, description="Per-attempt HTTP timeout in seconds")
    http_max_attempts: int = Field(default=3, ge=1, le=10, description="Total attempts per send")
    http_backoff_multiplier: float = Field(default=0.5, ge=0, description="Exponential backoff multiplier")
    http_backoff_max: float = Field(default=4.0, ge=0, description="Upper bound for a single backoff wait")

    # Diagnostic logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional diagnostic log file")

    # Host service
    service_name: str = Field(default="jwt-pizza-service", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")
    service_host: str = Field(default="0.0.0.0", description="Bind address")
    service_port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    instance_id: str = Field(default="", description="Override instance ID")
    enable_request_tracking: bool = Field(default=True, description="Install the request tracking middleware")

    @field_validator('metrics_url', 'logging_url')
    @classmethod
    def validate_endpoint(cls, v):
        """Endpoints must be absolute http(s) URLs"""
        if not v or not v.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        return v

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator('log_file')
    @classmethod
    def ensure_log_directory(cls, v):
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    def metrics_headers(self) -> Dict[str, str]:
        """Headers for the metrics endpoint"""
        return {"Authorization": f"Bearer {self.metrics_api_key}"}

    def logging_headers(self) -> Dict[str, str]:
        """Headers for the logging endpoint"""
        return {"Authorization": f"Bearer {self.logging_user_id}:{self.logging_api_key}"}

    def get_instance_id(self) -> str:
        return self.instance_id or socket.gethostname()

    def get_otlp_resource_attributes(self) -> Dict[str, str]:
        """Get OTLP resource attributes"""
        return {
            "service.name": self.service_name,
            "service.version": self.service_version,
            "service.instance.id": self.get_instance_id(),
        }
