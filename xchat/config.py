import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .errors import ConfigurationError
from .models import SendTo

_CONFIG_PATH = os.getenv("XCHAT_CONFIG", "config.toml")
_ENV_PATH = os.getenv("XCHAT_ENV", ".env")

DEFAULT_PORT = 27960


class ServerSettings(BaseModel):
    host: str = "localhost"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    log: Path
    rcon_password: str = Field(min_length=1)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


class HandlerSettings(BaseModel):
    name: str
    send_to: Optional[SendTo] = None


class RelaySettings(BaseModel):
    poll_interval_ms: int = Field(default=100, gt=0)
    send_interval_ms: int = Field(default=550, gt=0)
    probe_timeout_ms: int = Field(default=3000, gt=0)
    line_queue_size: int = Field(default=1000, gt=0)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="XCHAT_",
        env_nested_delimiter="__",
        toml_file=_CONFIG_PATH,
        env_file=_ENV_PATH,
        extra="ignore",
    )

    servers: List[ServerSettings] = Field(min_length=1)
    handlers: List[HandlerSettings] = Field(
        default_factory=lambda: [HandlerSettings(name="say")]
    )
    relay: RelaySettings = Field(default_factory=RelaySettings)
    say_format: str = "{server}^7@{player}^7: ^2{message}"
    logs_dir: Optional[Path] = None

    @field_validator("handlers", mode="before")
    @classmethod
    def _expand_handler_names(cls, value):
        # A bare identifier is shorthand for {name = "..."}
        if isinstance(value, list):
            return [{"name": item} if isinstance(item, str) else item for item in value]
        return value

    @field_validator("say_format")
    @classmethod
    def _check_say_format(cls, value: str) -> str:
        try:
            value.format(server="server", player="player", message="message")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(
                f"say_format {value!r} must only use {{server}}, {{player}} and "
                f"{{message}}: {type(e).__name__}: {e}"
            ) from e
        return value

    @model_validator(mode="after")
    def _check_unique_servers(self):
        seen = set()
        for server in self.servers:
            if server.address in seen:
                raise ValueError(f"a server with address {server.address} already exists")
            seen.add(server.address)
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Source order: init args > OS env > .env > config.toml > secrets
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from ``config_path`` (or ``XCHAT_CONFIG``) and the environment.

    Raises:
        ConfigurationError: The file is missing, is not valid TOML, or does not
            describe a usable relay.
    """
    path = Path(config_path) if config_path is not None else Path(_CONFIG_PATH)
    if not path.is_file():
        raise ConfigurationError(f"configuration file {path} does not exist")

    class _FileSettings(Settings):
        model_config = SettingsConfigDict(toml_file=path)

    try:
        return _FileSettings()
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration in {path}: {e}") from e
    except ValueError as e:
        # tomllib.TOMLDecodeError is a ValueError
        raise ConfigurationError(f"could not parse {path}: {e}") from e
