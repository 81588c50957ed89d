"""Catalog building from layer folders."""
from __future__ import annotations

import zipfile
from pathlib import Path

import pytest
from PIL import Image

from nftgen.catalog import Trait, apply_overrides, build_catalog
from nftgen.errors import DecodeError, EmptyCatalogError, ValidationError

from conftest import make_layers, solid


def test_layers_in_listing_order(layers_root: Path) -> None:
    catalog = build_catalog(layers_root)
    assert [layer.name for layer in catalog] == ["Background", "Body", "Eyes"]
    assert [t.name for t in catalog[0].traits] == ["Day", "Night", "Sunset"]
    assert all(t.rarity == 1 for layer in catalog for t in layer.traits)
    assert catalog[1].directory == "Body"
    assert catalog[1].traits[0].file == "Blue.png"


def test_accepts_all_image_extensions(tmp_path: Path) -> None:
    layer = tmp_path / "Hat"
    layer.mkdir()
    Image.new("RGB", (4, 4), "red").save(layer / "cap.jpg")
    Image.new("RGB", (4, 4), "red").save(layer / "beanie.JPEG", format="JPEG")
    Image.new("P", (4, 4)).save(layer / "crown.gif")
    solid(layer / "visor.png", (1, 2, 3, 255))
    (layer / "notes.txt").write_text("ignored")

    (hat,) = build_catalog(tmp_path)
    assert sorted(t.name for t in hat.traits) == ["beanie", "cap", "crown", "visor"]


def test_layer_without_images_is_skipped(layers_root: Path) -> None:
    empty = layers_root / "Empty"
    empty.mkdir()
    (empty / "readme.md").write_text("no images here")

    catalog = build_catalog(layers_root)
    assert "Empty" not in [layer.name for layer in catalog]


def test_only_empty_layers_raises(tmp_path: Path) -> None:
    (tmp_path / "A").mkdir()
    (tmp_path / "B").mkdir()
    (tmp_path / "B" / "data.txt").write_text("x")
    (tmp_path / "loose.png").write_bytes(b"")

    with pytest.raises(EmptyCatalogError):
        build_catalog(tmp_path)


def test_corrupt_image_fails_whole_build(layers_root: Path) -> None:
    (layers_root / "Eyes" / "Broken.png").write_bytes(b"definitely not a png")

    with pytest.raises(DecodeError) as excinfo:
        build_catalog(layers_root)
    assert excinfo.value.layer == "Eyes"
    assert "Broken.png" in str(excinfo.value)


def test_archives_only_when_allowed(tmp_path: Path) -> None:
    make_layers(tmp_path / "layers", {"Base": ["plain"]})
    inner = solid(tmp_path / "inner.png", (9, 9, 9, 255))
    with zipfile.ZipFile(tmp_path / "layers" / "Base" / "zipped.zip", "w") as archive:
        archive.write(inner, "inner.png")

    assert [t.name for t in build_catalog(tmp_path / "layers")[0].traits] == ["plain"]
    allowed = build_catalog(tmp_path / "layers", allow_archives=True)
    assert [t.name for t in allowed[0].traits] == ["plain", "zipped"]


def test_missing_root_is_validation_error(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        build_catalog(tmp_path / "nope")


def test_trait_rarity_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Trait(name="x", file="x.png", rarity=0)


def test_overrides_reorder_and_reweight(layers_root: Path) -> None:
    catalog = build_catalog(layers_root)
    changed = apply_overrides(catalog, ["Eyes", "Background"], {"Eyes": {"Sad": 3}})

    assert [layer.name for layer in changed] == ["Eyes", "Background"]
    weights = {t.name: t.rarity for t in changed[0].traits}
    assert weights == {"Happy": 1, "Sad": 3}
    # original untouched
    assert all(t.rarity == 1 for t in catalog[2].traits)


def test_overrides_unknown_layer(layers_root: Path) -> None:
    with pytest.raises(ValidationError):
        apply_overrides(build_catalog(layers_root), ["Nope"])
