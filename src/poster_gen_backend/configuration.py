from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field

from .models import ArtifactMode

load_dotenv()

logger = logging.getLogger(__name__)

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/config.yaml" for parent in _HERE.parents[:4]]

CONFIG_PATH = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)

# Every value can be overridden from the environment (or a .env file); the
# YAML file, when present, is merged on top of these.
_BUILTIN_DEFAULTS: Dict[str, Any] = {
    "app": {
        "name": "Poster Generator API",
        "version": "0.1.0",
        "log_level": "${oc.env:LOG_LEVEL,INFO}",
        "allowed_origins": "${oc.env:ALLOWED_ORIGINS,'*'}",
    },
    "database": {
        "path": "${oc.env:DATABASE_PATH,'data/poster_gen.db'}",
    },
    "storage": {
        "templates_dir": "${oc.env:TEMPLATES_DIR,templates}",
        "output_dir": "${oc.env:OUTPUT_DIR,'output/posters'}",
        "public_prefix": "/outputs",
    },
    "rendering": {
        "artifact_mode": "${oc.env:ARTIFACT_MODE,pdf}",
        "timeout_seconds": "${oc.decode:${oc.env:RENDER_TIMEOUT_SECONDS,30}}",
        "settle_delay_ms": "${oc.decode:${oc.env:RENDER_SETTLE_DELAY_MS,300}}",
        "page_format": "A4",
        "landscape": False,
        "viewport_width": 1240,
        "viewport_height": 1754,
        "browser_args": ["--no-sandbox", "--disable-dev-shm-usage"],
    },
    "auth": {
        "jwt_secret": "${oc.env:JWT_SECRET,'change-me-in-production'}",
        "algorithm": "HS256",
        "issuer": "poster-gen-api",
        "access_token_ttl_minutes": "${oc.decode:${oc.env:ACCESS_TOKEN_TTL_MINUTES,60}}",
    },
}


class AppSection(BaseModel):
    name: str
    version: str
    log_level: str = "INFO"
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])


class DatabaseSection(BaseModel):
    path: Path


class StorageSection(BaseModel):
    templates_dir: Path
    output_dir: Path
    public_prefix: str = "/outputs"


class RenderingSection(BaseModel):
    artifact_mode: ArtifactMode = ArtifactMode.PDF
    timeout_seconds: float = Field(30.0, gt=0)
    settle_delay_ms: int = Field(300, ge=0)
    page_format: str = "A4"
    landscape: bool = False
    viewport_width: int = Field(1240, gt=0)
    viewport_height: int = Field(1754, gt=0)
    browser_args: List[str] = Field(default_factory=list)


class AuthSection(BaseModel):
    jwt_secret: str = Field(..., min_length=1)
    algorithm: str = "HS256"
    issuer: str = "poster-gen-api"
    access_token_ttl_minutes: int = Field(60, gt=0)


class AppSettings(BaseModel):
    app: AppSection
    database: DatabaseSection
    storage: StorageSection
    rendering: RenderingSection
    auth: AuthSection


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    base = OmegaConf.create(_BUILTIN_DEFAULTS)
    if CONFIG_PATH is None:
        return base
    logger.info(f"Loading configuration overrides from {CONFIG_PATH}")
    return DictConfig(OmegaConf.merge(base, OmegaConf.load(CONFIG_PATH)))


def make_runtime_config(overrides: Optional[Dict[str, Any]] = None) -> DictConfig:
    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    merged = DictConfig(OmegaConf.merge(base, OmegaConf.create(overrides or {})))
    return merged


def _split_origins(value: Any) -> List[str]:
    if isinstance(value, str):
        origins = [item.strip() for item in value.split(",") if item.strip()]
        return origins or ["*"]
    return list(value or ["*"])


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> AppSettings:
    """
    Resolve the runtime configuration into validated settings.

    Environment interpolations are resolved at call time, so variables set
    after import (for example by a test harness) are honoured.

    Args:
        overrides: Nested mapping merged over defaults and config.yaml

    Returns:
        AppSettings with every section validated

    Raises:
        omegaconf.errors.ConfigKeyError: If an override names an unknown key
        pydantic.ValidationError: If a resolved value has the wrong type
    """
    config = make_runtime_config(overrides)
    resolved: Dict[str, Any] = OmegaConf.to_container(config, resolve=True, enum_to_str=True)  # type: ignore[assignment]
    resolved["app"]["allowed_origins"] = _split_origins(resolved["app"].get("allowed_origins"))
    return AppSettings.model_validate(resolved)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
