"""Drive sampling, compositing and metadata output for one collection."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from tqdm import tqdm

from .catalog import Layer
from .compositor import compose
from .config import DEFAULT_BASE_IMAGE_URL, DEFAULT_RESOLUTION
from .errors import CompositionError, ValidationError
from .jobs import JobStatus
from .metadata import build_metadata, write_metadata
from .sampler import UniqueCombinationSampler, combination_space

LOGGER = logging.getLogger("nftgen.assembler")


def ensure_dir(p: Path) -> Path:
    p.mkdir(parents=True, exist_ok=True)
    return p


@dataclass
class GenerationResult:
    images_path: Path
    metadata_path: Path
    final_count: int


class CollectionAssembler:
    """Generate ``num`` unique items into ``<out_dir>/images`` and ``<out_dir>/metadata``.

    Items are numbered from 0 in the order they are successfully written.
    When compositing an item fails, its combination is dropped and the same
    id goes to the next combination drawn, so ids stay contiguous.
    """

    def __init__(
        self,
        catalog: Sequence[Layer],
        layers_root: Path,
        out_dir: Path,
        *,
        collection_name: str,
        description: str,
        base_image_url: str = DEFAULT_BASE_IMAGE_URL,
        external_url: Optional[str] = None,
        resolution: int = DEFAULT_RESOLUTION,
        output_format: str = "png",
        seed: Optional[int] = None,
        max_consecutive_rejections: int = 10000,
        progress: bool = True,
    ):
        self.catalog = tuple(catalog)
        self.layers_root = Path(layers_root)
        self.out_dir = Path(out_dir)
        self.collection_name = collection_name
        self.description = description
        self.base_image_url = base_image_url or DEFAULT_BASE_IMAGE_URL
        self.external_url = external_url
        self.resolution = resolution
        self.output_format = output_format.lower()
        self.progress = progress
        self.sampler = UniqueCombinationSampler(
            self.catalog,
            rng=random.Random(seed),
            max_consecutive_rejections=max_consecutive_rejections,
        )
        self.status = JobStatus.PENDING
        self.failures = 0

    @property
    def images_path(self) -> Path:
        return self.out_dir / "images"

    @property
    def metadata_path(self) -> Path:
        return self.out_dir / "metadata"

    def _check_output_empty(self) -> None:
        # leftovers from an earlier run would break the 0..N-1 id range
        for directory in (self.images_path, self.metadata_path):
            if directory.is_dir() and any(directory.iterdir()):
                raise ValidationError(f"Output directory {directory} is not empty; choose a new output folder")

    def run(self, num: int) -> GenerationResult:
        try:
            self._check_output_empty()
            ensure_dir(self.images_path)
            ensure_dir(self.metadata_path)
            self.status = JobStatus.RUNNING
            count = self._generate(num)
        except Exception:
            self.status = JobStatus.FAILED
            raise
        self.status = JobStatus.COMPLETED
        LOGGER.info("Generation complete: %d items in %s (%d failed attempts)", count, self.out_dir, self.failures)
        return GenerationResult(self.images_path, self.metadata_path, count)

    def _generate(self, num: int) -> int:
        max_possible = combination_space(self.catalog)
        LOGGER.info("Starting generation of %d items, %d unique combinations possible", num, max_possible)
        if num > max_possible:
            LOGGER.warning("Requested %d items but only %d unique combinations exist", num, max_possible)

        # ids come from the live counter, so a failed item leaves no gap
        count = 0
        with tqdm(total=num, desc="Generating", disable=not self.progress) as pbar:
            while count < num:
                # draw a combination not used before in this job
                combination = self.sampler.next_unique(num)
                item_id = count
                image_path = self.images_path / f"{item_id}.{self.output_format}"
                sources = [self.layers_root / layer.directory / trait.file for layer, trait in combination.picks]
                # layer order is stacking order: first source is the base
                try:
                    compose(sources, image_path, size=self.resolution, output_format=self.output_format)
                except CompositionError as exc:
                    self.failures += 1
                    LOGGER.warning("Failed to create item #%d (%s): %s", item_id, combination.fingerprint, exc)
                    image_path.unlink(missing_ok=True)  # drop any half-written file
                    continue

                # image is on disk, now its metadata record
                record = build_metadata(
                    self.collection_name,
                    self.description,
                    item_id,
                    combination.picks,
                    self.base_image_url,
                    extension=self.output_format,
                    external_url=self.external_url,
                )
                write_metadata(record, self.metadata_path / f"{item_id}.json")
                count += 1
                pbar.update(1)
                LOGGER.debug("Created item #%d", item_id)
        return count


def generate_collection(
    catalog: Sequence[Layer],
    layers_root: Path,
    out_dir: Path,
    num: int,
    **options,
) -> GenerationResult:
    """Convenience wrapper: build a :class:`CollectionAssembler` and run it."""

    return CollectionAssembler(catalog, layers_root, out_dir, **options).run(num)
