"""Configuration schema using Pydantic."""

from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, PydanticBaseSettingsSource, SettingsConfigDict

IdList = Annotated[list[int], NoDecode]


def _parse_id_list(value: Any) -> Any:
    """Accept ``"1,2"`` style strings in addition to JSON lists."""
    if isinstance(value, int):
        return [value]
    if isinstance(value, str):
        return [int(part) for part in value.strip().strip("[]").split(",") if part.strip()]
    return value


class TelegramConfig(BaseModel):
    """Telegram channel configuration."""
    token: str = ""  # Bot token from @BotFather
    proxy: str | None = None  # HTTP/SOCKS5 proxy URL, e.g. "socks5://127.0.0.1:1080"
    owner_ids: IdList = Field(default_factory=list)  # Allowed private senders, also /reload owners
    group_ids: IdList = Field(default_factory=list)  # Allowed group chats
    chat_command: str = "/chat"
    group_reply_only: bool = True  # In groups, plain text must reply to the bot
    render_markdown: bool = True

    @field_validator("owner_ids", "group_ids", mode="before")
    @classmethod
    def split_ids(cls, value: Any) -> Any:
        return _parse_id_list(value)

    @field_validator("chat_command", mode="before")
    @classmethod
    def normalize_chat_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            cmd = value.strip()
            if cmd and not cmd.startswith("/"):
                cmd = f"/{cmd}"
            return cmd or "/chat"
        return value


class BackendConfig(BaseModel):
    """Conversational backend configuration."""
    model: str = "openai/gpt-4o-mini"
    api_key: str = ""
    api_base: str | None = None
    extra_headers: dict[str, str] | None = None
    system_prompt: str = ""
    max_tokens: int = Field(default=4096, ge=1)
    temperature: float = 0.7
    timeout_seconds: int = Field(default=600, ge=1)
    max_history_turns: int = Field(default=40, ge=1)  # Messages replayed as context
    max_stored_turns: int = Field(default=10_000, ge=10)  # In-memory turn store cap


class StreamingConfig(BaseModel):
    """Streaming reply behaviour."""
    edit_interval_s: float = Field(default=1.5, ge=0.0)
    placeholder: str = "🤔"


class Config(BaseSettings):
    """Root configuration for chatrelay."""

    model_config = SettingsConfigDict(env_prefix="CHATRELAY_", env_nested_delimiter="__")

    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    debug: int = Field(default=0, ge=0, le=2)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # CHATRELAY_* variables override values read from the config file.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def log_level(self) -> str:
        """Loguru level matching the configured verbosity."""
        return {0: "INFO", 1: "DEBUG"}.get(self.debug, "TRACE")
