"""Runtime configuration for the generator."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pydantic
from pydantic import BaseModel, Field, field_validator

from .errors import ValidationError

DEFAULT_RESOLUTION = 1000
DEFAULT_BASE_IMAGE_URL = "ipfs://YOUR_IPFS_CID_PLACEHOLDER/"
DEFAULT_GATEWAY_URL = "https://ipfs.io/ipfs/"
MAX_NFT_COUNT = 5000

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif")
ARCHIVE_EXTENSIONS = (".zip",)
OUTPUT_FORMATS = ("png", "gif")


class GeneratorConfig(BaseModel):
    """Settings shared by the CLI and the worker, checked when built."""

    resolution: int = Field(DEFAULT_RESOLUTION, gt=0)
    output_format: str = "png"
    base_image_url: str = DEFAULT_BASE_IMAGE_URL
    max_consecutive_rejections: int = Field(10000, gt=0)
    max_nft_count: int = Field(MAX_NFT_COUNT, gt=0)
    layers_order: Optional[List[str]] = None
    rarity: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    seed: Optional[int] = None
    compress_images: bool = False
    allow_archives: bool = False
    log_file: Optional[Path] = None

    @field_validator("output_format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        value = str(value).lower()
        if value not in OUTPUT_FORMATS:
            raise ValueError(f"must be one of {', '.join(OUTPUT_FORMATS)}")
        return value


def load_json(path: Path) -> Dict:
    """Load a JSON object from *path*, or an empty dict if the file is missing."""

    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(f"Malformed config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError(f"Config file {path} must hold a JSON object")
    return data


def load_config(path: Optional[Path] = None, overrides: Optional[Mapping[str, object]] = None) -> GeneratorConfig:
    """Build a :class:`GeneratorConfig` from an optional ``config.json`` plus overrides.

    Unknown keys in the file are ignored. Overrides that are ``None`` leave
    the file (or default) value in place, so CLI flags only win when given.
    Bad values of either kind raise :class:`ValidationError`.
    """

    known = set(GeneratorConfig.model_fields)
    values: Dict[str, object] = {}
    if path is not None:
        values.update({k: v for k, v in load_json(Path(path)).items() if k in known})
    if overrides:
        values.update({k: v for k, v in overrides.items() if k in known and v is not None})

    try:
        return GeneratorConfig.model_validate(values)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid configuration: {exc}") from exc
