"""Metadata records for generated items."""
import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .catalog import Layer, Trait


def build_attributes(picks: Sequence[Tuple[Layer, Trait]]) -> List[Dict[str, str]]:
    return [{"trait_type": layer.name, "value": trait.name} for layer, trait in picks]


def build_metadata(
    collection_name: str,
    description: str,
    item_id: int,
    picks: Sequence[Tuple[Layer, Trait]],
    base_image_url: str,
    extension: str = "png",
    external_url: Optional[str] = None,
) -> Dict:
    """Return the metadata record of item *item_id*.

    Key order is part of the output format. ``external_url`` is left out
    entirely when it is not set.
    """

    record = {
        "name": f"{collection_name} #{item_id}",
        "description": description,
        "image": f"{base_image_url}{item_id}.{extension}",
    }
    if external_url:
        record["external_url"] = external_url
    record["attributes"] = build_attributes(picks)
    return record


def write_metadata(record: Dict, path: Path) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(record, f, ensure_ascii=False, indent=4)
    return path
