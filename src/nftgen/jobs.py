"""Job request, status and result types shared by the worker and the CLI."""
from __future__ import annotations

import random
import string
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import pydantic
from pydantic import BaseModel, Field, field_validator

from .config import DEFAULT_BASE_IMAGE_URL, MAX_NFT_COUNT, OUTPUT_FORMATS
from .errors import ValidationError


class JobStatus(str, Enum):
    """
    Generation job lifecycle.

    State transitions:
        PENDING -> RUNNING -> COMPLETED
                           -> FAILED
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobRequest(BaseModel):
    """Everything a generation job needs, checked when the request is built."""

    model_config = {"frozen": True}

    nft_count: int = Field(..., ge=1, le=MAX_NFT_COUNT)
    collection_name: str = Field(..., min_length=1)
    collection_description: str = Field(..., min_length=1)
    base_image_url: str = DEFAULT_BASE_IMAGE_URL
    external_url: Optional[str] = None
    output_format: str = "png"
    compress_images: bool = False

    @field_validator("collection_name", "collection_description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("base_image_url", mode="before")
    @classmethod
    def _default_base_url(cls, value: Any) -> Any:
        return value or DEFAULT_BASE_IMAGE_URL

    @field_validator("external_url", mode="before")
    @classmethod
    def _blank_external_url(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("output_format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> Any:
        value = str(value or "png").lower()
        if value not in OUTPUT_FORMATS:
            raise ValueError(f"must be one of {', '.join(OUTPUT_FORMATS)}")
        return value

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], max_nft_count: int = MAX_NFT_COUNT) -> "JobRequest":
        """Build a request from loosely typed input (form fields, JSON, CLI)."""

        try:
            request = cls.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid job request: {exc}") from exc
        if request.nft_count > max_nft_count:
            raise ValidationError(f"nft_count must be at most {max_nft_count}")
        return request


def new_job_id() -> str:
    """``gen-<epoch ms>-<7 random base36 chars>``"""

    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(random.choice(alphabet) for _ in range(7))
    return f"gen-{int(time.time() * 1000)}-{suffix}"


@dataclass
class JobResult:
    job_id: str
    status: JobStatus
    final_count: int = 0
    archive_path: Optional[Path] = None
    output_dir: Optional[Path] = None
    error: Optional[str] = None
    reported_at: float = field(default_factory=time.time)


class ResultSink(Protocol):
    def report(self, job_id: str, result: JobResult) -> None:
        ...


class InMemoryResultStore:
    """Job results kept in process memory until they expire.

    Entries are written when a job reaches a terminal state and dropped by
    :meth:`purge_expired` once older than ``ttl_seconds``.
    """

    def __init__(self, ttl_seconds: float = 2 * 60 * 60):
        self.ttl_seconds = ttl_seconds
        self._results: Dict[str, JobResult] = {}
        self._lock = threading.Lock()

    def report(self, job_id: str, result: JobResult) -> None:
        with self._lock:
            self._results[job_id] = result

    def get(self, job_id: str) -> Optional[JobResult]:
        with self._lock:
            return self._results.get(job_id)

    def purge_expired(self, now: Optional[float] = None) -> list:
        """Remove and return the results older than the TTL."""

        now = time.time() if now is None else now
        with self._lock:
            expired = [job_id for job_id, result in self._results.items() if now - result.reported_at >= self.ttl_seconds]
            return [self._results.pop(job_id) for job_id in expired]

    def __len__(self) -> int:
        return len(self._results)
