"""Post-publish metadata rewrite."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from nftgen.errors import MetadataParseError, ValidationError
from nftgen.rewrite import final_base_url, rewrite_metadata


def _write(path: Path, record) -> None:
    path.write_text(json.dumps(record, indent=4), encoding="utf-8")


def _record(image: str) -> dict:
    return {"name": "Cats #0", "description": "d", "image": image, "attributes": []}


def test_final_base_url() -> None:
    assert final_base_url("https://ipfs.io/ipfs/", "Qm123") == "https://ipfs.io/ipfs/Qm123/"


def test_rewrite_sets_gateway_url_and_is_idempotent(tmp_path: Path) -> None:
    _write(tmp_path / "0.json", _record("ipfs://PLACEHOLDER/0.png"))

    assert rewrite_metadata(tmp_path, "https://ipfs.io/ipfs/", "Qm123") == 1
    first = json.loads((tmp_path / "0.json").read_text())
    assert first["image"] == "https://ipfs.io/ipfs/Qm123/0.png"

    rewrite_metadata(tmp_path, "https://ipfs.io/ipfs/", "Qm123")
    second = json.loads((tmp_path / "0.json").read_text())
    assert second == first


def test_only_image_field_changes(tmp_path: Path) -> None:
    record = _record("ipfs://PLACEHOLDER/3.png")
    record["external_url"] = "https://example.com"
    record["attributes"] = [{"trait_type": "Eyes", "value": "Happy"}]
    _write(tmp_path / "3.json", record)
    (tmp_path / "notes.txt").write_text("untouched")

    rewrite_metadata(tmp_path, "https://gw/", "cid")
    updated = json.loads((tmp_path / "3.json").read_text())
    assert updated == {**record, "image": "https://gw/cid/3.png"}
    assert list(updated) == list(record)
    assert (tmp_path / "notes.txt").read_text() == "untouched"


def test_gif_records_keep_their_extension(tmp_path: Path) -> None:
    _write(tmp_path / "5.json", _record("ipfs://PLACEHOLDER/5.gif"))
    rewrite_metadata(tmp_path, "https://gw/", "cid")
    assert json.loads((tmp_path / "5.json").read_text())["image"] == "https://gw/cid/5.gif"


def test_explicit_extension_wins(tmp_path: Path) -> None:
    _write(tmp_path / "5.json", _record("ipfs://PLACEHOLDER/5.png"))
    rewrite_metadata(tmp_path, "https://gw/", "cid", image_extension=".gif")
    assert json.loads((tmp_path / "5.json").read_text())["image"] == "https://gw/cid/5.gif"


def test_malformed_file_aborts_batch_without_writes(tmp_path: Path) -> None:
    _write(tmp_path / "0.json", _record("ipfs://PLACEHOLDER/0.png"))
    (tmp_path / "1.json").write_text("{not json", encoding="utf-8")
    before = (tmp_path / "0.json").read_text()

    with pytest.raises(MetadataParseError) as excinfo:
        rewrite_metadata(tmp_path, "https://gw/", "cid")
    assert excinfo.value.path.endswith("1.json")
    assert (tmp_path / "0.json").read_text() == before


def test_requires_cid(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        rewrite_metadata(tmp_path, "https://gw/", "")


def test_missing_directory_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        rewrite_metadata(tmp_path / "metadta", "https://gw/", "cid")
