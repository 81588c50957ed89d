"""Stack per-layer trait images into one output image."""
from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path
from typing import List, Sequence, Union

from PIL import Image, ImageOps, ImageSequence, UnidentifiedImageError

from .config import DEFAULT_RESOLUTION, IMAGE_EXTENSIONS, OUTPUT_FORMATS
from .errors import CompositionError

LOGGER = logging.getLogger("nftgen.compositor")

PathLike = Union[str, Path]

DEFAULT_FRAME_DURATION = 100


def open_source(path: PathLike) -> Image.Image:
    """Open *path* as an image.

    A ``.zip`` file is accepted too: the first member with an image
    extension is opened instead. Archives inside that archive are not
    searched.
    """

    path = Path(path)
    try:
        if zipfile.is_zipfile(path):
            with zipfile.ZipFile(path) as archive:
                member = next(
                    (name for name in archive.namelist() if Path(name).suffix.lower() in IMAGE_EXTENSIONS),
                    None,
                )
                if member is None:
                    raise CompositionError(f"No supported image found inside {path.name}")
                data = archive.read(member)
            return Image.open(io.BytesIO(data))
        return Image.open(path)
    except (UnidentifiedImageError, zipfile.BadZipFile, OSError) as exc:
        raise CompositionError(f"Cannot decode {path.name}: {exc}") from exc


def cover_fit(img: Image.Image, size: int) -> Image.Image:
    """Scale *img* to fill a ``size`` x ``size`` square, cropping the overflow around the centre."""

    img = img.convert("RGBA")
    if img.size == (size, size):
        return img
    return ImageOps.fit(img, (size, size), method=Image.LANCZOS, centering=(0.5, 0.5))


def render_frames(sources: Sequence[PathLike], size: int = DEFAULT_RESOLUTION, animate: bool = False) -> List[Image.Image]:
    """Composite *sources* bottom to top and return the resulting frame(s).

    The first source is the base layer. When *animate* is set and the base
    is animated, one frame is produced per base frame; overlays always
    contribute their first frame only.
    """

    if not sources:
        raise CompositionError("No layers selected for composition.")

    try:
        # overlays: first frame only, even if animated
        overlays = []
        for source in sources[1:]:
            with open_source(source) as img:
                img.seek(0)
                overlays.append(cover_fit(img, size))

        # base layer decides the frame count
        with open_source(sources[0]) as base:
            if animate and getattr(base, "is_animated", False):
                base_frames = [frame.copy() for frame in ImageSequence.Iterator(base)]
            else:
                base.seek(0)
                base_frames = [base.copy()]
            # a GIF without a loop extension plays once; keep it that way
            loop = base.info.get("loop")
    except (OSError, ValueError) as exc:
        raise CompositionError(f"Cannot decode layer image: {exc}") from exc

    # stack bottom to top: later layers cover earlier ones
    frames = []
    for frame in base_frames:
        canvas = cover_fit(frame, size)
        for overlay in overlays:
            canvas = Image.alpha_composite(canvas, overlay)
        canvas.info["duration"] = frame.info.get("duration", DEFAULT_FRAME_DURATION)
        canvas.info.pop("loop", None)
        if loop is not None:
            canvas.info["loop"] = loop
        frames.append(canvas)
    return frames


def compose(
    sources: Sequence[PathLike],
    destination: PathLike,
    *,
    size: int = DEFAULT_RESOLUTION,
    output_format: str = "png",
) -> Path:
    """Composite *sources* and write the result to *destination*."""

    output_format = output_format.lower()
    if output_format not in OUTPUT_FORMATS:
        raise CompositionError(f"Unsupported output format: {output_format!r}")

    frames = render_frames(sources, size=size, animate=output_format == "gif")
    destination = Path(destination)
    try:
        if output_format == "gif" and len(frames) > 1:
            options = {"duration": [frame.info["duration"] for frame in frames], "disposal": 2}
            if "loop" in frames[0].info:
                options["loop"] = frames[0].info["loop"]
            frames[0].save(destination, format="GIF", save_all=True, append_images=frames[1:], **options)
        else:
            frames[0].save(destination, format=output_format.upper())
    except (OSError, ValueError) as exc:
        raise CompositionError(f"Cannot encode {destination.name}: {exc}") from exc
    LOGGER.debug("Wrote %s (%d frame(s))", destination, len(frames))
    return destination
