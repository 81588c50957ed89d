from __future__ import annotations

import json

from nftgen.catalog import Layer, Trait
from nftgen.metadata import build_metadata, write_metadata


def _picks():
    bg = Layer("Background", "Background", (Trait("Sunset", "Sunset.png"),))
    eyes = Layer("Eyes", "Eyes", (Trait("Happy", "Happy.png"),))
    return ((bg, bg.traits[0]), (eyes, eyes.traits[0]))


def test_record_shape_and_key_order() -> None:
    record = build_metadata("Cats", "Pixel cats", 7, _picks(), "ipfs://CID/", "png", "https://cats.example")
    assert list(record) == ["name", "description", "image", "external_url", "attributes"]
    assert record == {
        "name": "Cats #7",
        "description": "Pixel cats",
        "image": "ipfs://CID/7.png",
        "external_url": "https://cats.example",
        "attributes": [
            {"trait_type": "Background", "value": "Sunset"},
            {"trait_type": "Eyes", "value": "Happy"},
        ],
    }


def test_external_url_omitted_when_unset() -> None:
    record = build_metadata("Cats", "Pixel cats", 0, _picks(), "ipfs://CID/", "gif")
    assert "external_url" not in record
    assert record["image"] == "ipfs://CID/0.gif"


def test_deterministic() -> None:
    args = ("Cats", "d", 3, _picks(), "ipfs://x/")
    assert build_metadata(*args) == build_metadata(*args)


def test_written_with_four_space_indent(tmp_path) -> None:
    record = build_metadata("Café", "ü", 1, _picks(), "ipfs://x/")
    path = write_metadata(record, tmp_path / "1.json")
    text = path.read_text(encoding="utf-8")
    assert text.startswith('{\n    "name": "Café #1"')
    assert json.loads(text) == record
