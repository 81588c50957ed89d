"""Build the layer/trait catalog from an extracted asset directory.

Every immediate subdirectory of the asset root is a layer; every image file
directly inside it is a trait named after the file stem::

    assets/
        Background/  Sunset.png  Night.png
        Body/        Blue.png    Red.png
        Eyes/        Happy.png

Layer order follows the sorted directory listing unless ``layers_order``
says otherwise, and it is the order layers are stacked in.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from PIL import Image, UnidentifiedImageError

from .compositor import open_source
from .config import ARCHIVE_EXTENSIONS, IMAGE_EXTENSIONS
from .errors import CompositionError, DecodeError, EmptyCatalogError, ValidationError

LOGGER = logging.getLogger("nftgen.catalog")


@dataclass(frozen=True)
class Trait:
    name: str
    file: str
    rarity: float = 1

    def __post_init__(self):
        if not self.rarity > 0:
            raise ValidationError(f"Trait {self.name!r} must have a positive rarity, got {self.rarity!r}")


@dataclass(frozen=True)
class Layer:
    name: str
    directory: str
    traits: Tuple[Trait, ...]


LayerCatalog = Tuple[Layer, ...]


def list_trait_files(folder: Path, extensions: Iterable[str]) -> List[Path]:
    """Return the files in *folder* whose suffix is one of *extensions*, sorted by name."""

    if not folder.exists() or not folder.is_dir():
        return []
    allowed = tuple(extensions)
    return [f for f in sorted(folder.iterdir()) if f.is_file() and f.suffix.lower() in allowed]


def _check_decodable(path: Path, layer: str) -> None:
    if path.suffix.lower() in ARCHIVE_EXTENSIONS:
        try:
            with open_source(path) as img:
                img.load()
        except (CompositionError, OSError) as exc:
            raise DecodeError(path, layer, str(exc)) from exc
        return
    try:
        with Image.open(path) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise DecodeError(path, layer, str(exc)) from exc


def build_catalog(root: Path, *, allow_archives: bool = False) -> LayerCatalog:
    """Scan *root* and return the ordered layer catalog.

    A file that cannot be decoded aborts the whole build with
    :class:`DecodeError`. Layers without any trait are left out; if nothing
    is left, :class:`EmptyCatalogError` is raised.
    """

    root = Path(root)
    if not root.is_dir():
        raise ValidationError(f"Asset root {root} is not a directory")

    extensions = IMAGE_EXTENSIONS + (ARCHIVE_EXTENSIONS if allow_archives else ())
    layers: List[Layer] = []
    for layer_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        traits = []
        for path in list_trait_files(layer_dir, extensions):
            _check_decodable(path, layer_dir.name)
            traits.append(Trait(name=path.stem, file=path.name, rarity=1))

        if not traits:
            LOGGER.debug("Skipping layer %s: no usable images", layer_dir.name)
            continue
        layers.append(Layer(name=layer_dir.name, directory=layer_dir.name, traits=tuple(traits)))
        LOGGER.info("Layer %s: %d traits", layer_dir.name, len(traits))

    if not layers:
        raise EmptyCatalogError(f"No valid image files ({', '.join(IMAGE_EXTENSIONS)}) found under {root}")
    return tuple(layers)


def apply_overrides(
    catalog: Sequence[Layer],
    layers_order: Optional[Sequence[str]] = None,
    rarity: Optional[Mapping[str, Mapping[str, float]]] = None,
) -> LayerCatalog:
    """Return a new catalog with the layer order and per-trait weights changed.

    ``layers_order`` keeps only the named layers, in that order; naming a
    layer the catalog does not have is an error. ``rarity`` maps layer name
    to trait name to weight; traits not mentioned keep their weight.
    """

    by_name: Dict[str, Layer] = {layer.name: layer for layer in catalog}
    if layers_order:
        missing = [name for name in layers_order if name not in by_name]
        if missing:
            raise ValidationError(f"layers_order names unknown layers: {', '.join(missing)}")
        ordered = [by_name[name] for name in layers_order]
    else:
        ordered = list(catalog)

    weights = rarity or {}
    result = []
    for layer in ordered:
        layer_weights = weights.get(layer.name, {})
        traits = tuple(
            replace(trait, rarity=layer_weights[trait.name]) if trait.name in layer_weights else trait
            for trait in layer.traits
        )
        result.append(replace(layer, traits=traits))

    if not result:
        raise EmptyCatalogError("Catalog is empty after applying layers_order")
    return tuple(result)
