"""Point metadata records at their published images."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import OUTPUT_FORMATS
from .errors import MetadataParseError, ValidationError

LOGGER = logging.getLogger("nftgen.rewrite")


def final_base_url(gateway_url: str, cid: str) -> str:
    """``https://ipfs.io/ipfs/`` + ``Qm123`` -> ``https://ipfs.io/ipfs/Qm123/``"""

    return f"{gateway_url}{cid}/"


def _record_extension(record: Dict) -> str:
    # keep whatever format the record was generated with
    suffix = Path(str(record.get("image", ""))).suffix.lower().lstrip(".")
    return suffix if suffix in OUTPUT_FORMATS else "png"


def rewrite_metadata(
    directory: Path,
    gateway_url: str,
    cid: str,
    image_extension: Optional[str] = None,
) -> int:
    """Set ``image`` in every ``*.json`` record under *directory* and write it back.

    The new value is ``{gateway_url}{cid}/{file stem}.{extension}``. Without
    *image_extension* each record keeps the extension its current ``image``
    value has. Every file is parsed before any is written, so one malformed
    record leaves the whole batch untouched. Returns the number of records
    rewritten.
    """

    if not gateway_url or not cid:
        raise ValidationError("Both a gateway URL and a content identifier are required")
    directory = Path(directory)
    if not directory.is_dir():
        raise ValidationError(f"Metadata directory {directory} does not exist")
    base_url = final_base_url(gateway_url, cid)
    LOGGER.info("Rewriting metadata in %s to %s", directory, base_url)

    records: List[Tuple[Path, Dict]] = []
    for path in sorted(directory.glob("*.json")):
        try:
            with path.open("r", encoding="utf-8") as f:
                records.append((path, json.load(f)))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MetadataParseError(path, str(exc)) from exc

    for path, record in records:
        if not isinstance(record, dict):
            raise MetadataParseError(path, "expected a JSON object")

    for path, record in records:
        extension = (image_extension or _record_extension(record)).lower().lstrip(".")
        record["image"] = f"{base_url}{path.stem}.{extension}"
        with path.open("w", encoding="utf-8") as f:
            json.dump(record, f, ensure_ascii=False, indent=4)

    LOGGER.info("Rewrote %d metadata files", len(records))
    return len(records)
