"""Configuration helpers for the flat lay shopping app."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_EXTRACTION_MODEL = "gemini-2.5-flash-image-preview"
DEFAULT_SEARCH_MODEL = "gemini-2.5-flash"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value not in (None, "") else default
    except ValueError:
        return default


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        return default


@dataclass
class ShopConfig:
    """Configuration values for extraction, matching and image storage.

    Every backend credential is optional: a backend without credentials reports
    itself as unconfigured and is skipped by the matcher, while a missing
    Gemini key makes extraction fail fast with ``UpstreamUnavailable``.
    """

    gemini_api_key: Optional[str] = None
    extraction_model: str = DEFAULT_EXTRACTION_MODEL
    search_model: str = DEFAULT_SEARCH_MODEL
    serp_api_key: Optional[str] = None
    custom_search_api_key: Optional[str] = None
    search_engine_id: Optional[str] = None
    visual_only: bool = True
    allow_placeholder_items: bool = True
    generate_item_images: bool = True
    item_delay_seconds: float = 1.5
    max_candidates: int = 8
    fetch_timeout_seconds: float = 10.0
    generated_dir: str = "public/generated"
    public_base_url: str = "http://localhost:3001"
    environment: str | None = None

    @classmethod
    def from_env(cls) -> "ShopConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that API keys can be
        injected by the runtime environment.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("SHOP_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        gemini_api_key = get_value("gemini_api_key") or get_value("google_api_key")

        return cls(
            gemini_api_key=gemini_api_key,
            extraction_model=str(get_value("extraction_model") or DEFAULT_EXTRACTION_MODEL),
            search_model=str(get_value("search_model") or DEFAULT_SEARCH_MODEL),
            serp_api_key=get_value("serp_api_key"),
            custom_search_api_key=get_value("google_custom_search_api_key"),
            search_engine_id=get_value("google_search_engine_id"),
            visual_only=_parse_bool(get_value("visual_only"), True),
            allow_placeholder_items=_parse_bool(get_value("allow_placeholder_items"), True),
            generate_item_images=_parse_bool(get_value("generate_item_images"), True),
            item_delay_seconds=_parse_float(get_value("item_delay_seconds"), 1.5),
            max_candidates=_parse_int(get_value("max_candidates"), 8),
            fetch_timeout_seconds=_parse_float(get_value("fetch_timeout_seconds"), 10.0),
            generated_dir=str(get_value("generated_dir") or "public/generated"),
            public_base_url=str(get_value("public_base_url") or "http://localhost:3001"),
            environment=env_name,
        )

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config
