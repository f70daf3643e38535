"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SlackConfig(BaseModel):
    """Slack-specific configuration."""

    bot_token: str
    signing_secret: str | None = None
    app_token: str | None = None  # Enables Socket Mode when set
    host: str = "0.0.0.0"  # noqa: S104
    port: int = Field(3000, ge=1, le=65535)
    events_path: str = "/slack/events"
    commands_path: str = "/slack/commands"
    interactivity_path: str = "/slack/interactivity"
    command: str = "/analyze"
    thread_rejection_errors: list[str] = ["cannot_reply_to_message"]

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate Slack bot token format."""
        if not v.startswith("xoxb-"):
            raise ValueError("Bot token must start with xoxb-")
        return v

    @field_validator("app_token")
    @classmethod
    def validate_app_token(cls, v: str | None) -> str | None:
        """Validate Slack app token format."""
        if v is not None and not v.startswith("xapp-"):
            raise ValueError("App token must start with xapp-")
        return v

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        """Validate slash command name."""
        if not v.startswith("/") or len(v) < 2:
            raise ValueError(f"Slash command must start with '/': {v}")
        return v

    @model_validator(mode="after")
    def check_transport(self) -> "SlackConfig":
        """HTTP mode needs a signing secret to verify requests."""
        if self.app_token is None and not self.signing_secret:
            raise ValueError("signing_secret is required when app_token is not set")
        return self

    @property
    def socket_mode(self) -> bool:
        """Return True when events arrive over Socket Mode."""
        return self.app_token is not None


class TencentOCRConfig(BaseModel):
    """Tencent Cloud OCR configuration."""

    secret_id: str
    secret_key: str
    region: str = "ap-guangzhou"
    endpoint: str = "ocr.tencentcloudapi.com"

    @field_validator("secret_id", "secret_key", "region")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Reject empty credentials."""
        if not v.strip():
            raise ValueError("value must not be empty")
        return v


class OCRConfig(BaseModel):
    """OCR provider configuration."""

    provider: Literal["tencent"] = "tencent"
    tencent: TencentOCRConfig | None = None


class LLMConfig(BaseModel):
    """Chat-completions LLM configuration."""

    api_key: str
    api_url: str = "https://api.qnaigc.com/v1/chat/completions"
    model: str = "deepseek/deepseek-v3.2-251201"
    analyze_temperature: float = Field(0.1, ge=0.0, le=2.0)
    chat_temperature: float = Field(0.7, ge=0.0, le=2.0)
    timeout: float = Field(60.0, gt=0.0, le=600.0)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate the endpoint is an http(s) URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid LLM API URL: {v}")
        return v


class HTTPConfig(BaseModel):
    """Shared HTTP client configuration."""

    timeout: float = Field(30.0, gt=0.0, le=600.0)


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("/var/log/receipt-agent/agent.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"
    file: FileLoggingConfig = FileLoggingConfig()


class AgentConfig(BaseSettings):
    """Root configuration for Receipt Agent."""

    slack: SlackConfig
    ocr: OCRConfig
    llm: LLMConfig
    http: HTTPConfig = HTTPConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
    )
