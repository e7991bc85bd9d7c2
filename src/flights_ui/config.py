"""Server settings read from the environment (and a ``.env`` file, if present)."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from flights_ui.rendering import DEFAULT_EXTERNAL_URL

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_TEMPLATE_DIR = PACKAGE_DIR / "templates"
DEFAULT_LWC_BUNDLE_DIR = PACKAGE_DIR / "static" / "lwc"

ENV_PREFIX = "FLIGHTS_UI_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    host: str = "localhost"
    port: int = 3000
    public_base_url: Optional[str] = None
    external_url: str = DEFAULT_EXTERNAL_URL
    template_dir: Path = DEFAULT_TEMPLATE_DIR
    lwc_bundle_dir: Path = DEFAULT_LWC_BUNDLE_DIR
    json_response: bool = True
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = field(default=("*",))

    @property
    def base_url(self) -> str:
        """URL clients use to reach this server; derived from host and port unless configured."""
        return self.public_base_url or f"http://{self.host}:{self.port}"

    def with_overrides(self, **overrides) -> "Settings":
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "Settings":
        load_dotenv(dotenv_path)
        defaults = cls()
        origins = _env("CORS_ORIGINS")
        return cls(
            host=_env("HOST", defaults.host),
            port=int(_env("PORT", str(defaults.port))),
            public_base_url=_env("PUBLIC_BASE_URL"),
            external_url=_env("EXTERNAL_URL", defaults.external_url),
            template_dir=Path(_env("TEMPLATE_DIR", str(defaults.template_dir))),
            lwc_bundle_dir=Path(_env("LWC_BUNDLE_DIR", str(defaults.lwc_bundle_dir))),
            json_response=_env_bool("JSON_RESPONSE", defaults.json_response),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) if origins else defaults.cors_origins,
        )
