from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):

    allow_origin: str = Field(
        default="*",
        description="Value of Access-Control-Allow-Origin on proxy responses"
    )
    upstream_provider: Literal["gemini", "generic"] = Field(
        default="gemini",
        description="Which upstream adapter to forward requests to"
    )
    upstream_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Upstream base URL (gemini) or full endpoint URL (generic)"
    )
    nano_api_key: Optional[str] = Field(
        default=None,
        description="Upstream API key, never logged"
    )
    nano_model: str = Field(
        default="gemini-2.5-flash-image-preview",
        description="Generative model identifier"
    )
    default_prompt: str = Field(
        default="remove unwanted objects from the image",
        description="Instruction used when the caller sends none"
    )
    default_strength: float = Field(
        default=0.85,
        description="Edit strength used when the caller sends none"
    )
    upstream_timeout: float = Field(
        default=60.0,
        gt=0.0,
        description="Upstream request timeout in seconds"
    )
    proxy_path: str = Field(
        default="/nano-remove",
        description="Path the proxy handler is mounted on"
    )
    context: str = Field(
        default="prod",
        description="Deployment environment label"
    )
    app_version: str = Field(
        default="0.1.0",
        description="Version reported by /health"
    )
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")
    port: int = Field(default=8080, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    def cors_headers(self) -> dict:
        return {
            "Access-Control-Allow-Origin": self.allow_origin,
            "Access-Control-Allow-Headers": "Content-Type, Authorization",
            "Access-Control-Allow-Methods": "POST, OPTIONS",
        }
