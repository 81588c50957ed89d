from __future__ import annotations

from pathlib import Path
from typing import Dict, Sequence, Tuple

import pytest
from PIL import Image

Colour = Tuple[int, int, int, int]

PALETTE = [
    (255, 0, 0, 255),
    (0, 255, 0, 255),
    (0, 0, 255, 255),
    (255, 255, 0, 255),
    (0, 255, 255, 255),
    (255, 0, 255, 255),
]


def solid(path: Path, colour: Colour, size: int = 8) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", (size, size), colour).save(path)
    return path


def make_layers(root: Path, layout: Dict[str, Sequence[str]], size: int = 8) -> Path:
    """Create ``root/<layer>/<trait>.png`` for every trait in *layout*."""

    for index, (layer, traits) in enumerate(layout.items()):
        for offset, trait in enumerate(traits):
            solid(root / layer / f"{trait}.png", PALETTE[(index + offset) % len(PALETTE)], size)
    return root


@pytest.fixture
def layers_root(tmp_path: Path) -> Path:
    return make_layers(
        tmp_path / "layers",
        {
            "Background": ["Sunset", "Night", "Day"],
            "Body": ["Blue", "Red"],
            "Eyes": ["Happy", "Sad"],
        },
    )
