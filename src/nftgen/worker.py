"""Background job bodies: generate a collection, or rewrite a metadata batch.

These run inside whatever task executor the service uses; they take plain
paths and a typed :class:`~nftgen.jobs.JobRequest`, report a terminal
:class:`~nftgen.jobs.JobResult` to a :class:`~nftgen.jobs.ResultSink`, and
clean up after themselves on failure.
"""
from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path
from typing import Mapping, Optional

from PIL import Image

from .assembler import CollectionAssembler, ensure_dir
from .catalog import apply_overrides, build_catalog
from .config import GeneratorConfig
from .errors import ValidationError
from .jobs import JobRequest, JobResult, JobStatus, ResultSink
from .rewrite import rewrite_metadata

LOGGER = logging.getLogger("nftgen.worker")


def extract_upload(archive_path: Path, destination: Path) -> Path:
    """Unpack an uploaded zip into *destination* and return it."""

    archive_path = Path(archive_path)
    if not zipfile.is_zipfile(archive_path):
        raise ValidationError(f"Uploaded file {archive_path.name} must be a .zip archive.")

    destination = ensure_dir(Path(destination)).resolve()
    with zipfile.ZipFile(archive_path) as archive:
        for member in archive.namelist():
            target = (destination / member).resolve()
            if target != destination and destination not in target.parents:
                raise ValidationError(f"Archive member {member!r} escapes the extraction directory")
        archive.extractall(destination)
    LOGGER.info("Extracted %s to %s", archive_path.name, destination)
    return destination


def optimize_images(directory: Path) -> int:
    """Re-encode PNG and JPEG files under *directory* in place to shrink them."""

    count = 0
    for path in sorted(Path(directory).rglob("*")):
        suffix = path.suffix.lower()
        if not path.is_file() or suffix not in (".png", ".jpg", ".jpeg"):
            continue
        with Image.open(path) as img:
            img.load()
            if suffix == ".png":
                img.save(path, format="PNG", optimize=True, compress_level=9)
            else:
                img.convert("RGB").save(path, format="JPEG", quality=80, optimize=True)
        count += 1
        LOGGER.debug("Optimized file size for: %s", path)
    return count


def archive_directories(entries: Mapping[str, Path], archive_path: Path) -> Path:
    """Zip each directory in *entries* under its arcname; returns *archive_path*.

    A half-written archive is removed before the error propagates.
    """

    archive_path = Path(archive_path)
    try:
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
            for arcname, directory in entries.items():
                directory = Path(directory)
                for path in sorted(directory.rglob("*")):
                    if path.is_file():
                        archive.write(path, f"{arcname}/{path.relative_to(directory).as_posix()}")
    except BaseException:
        archive_path.unlink(missing_ok=True)
        raise
    LOGGER.info("Archived %s to %s", ", ".join(entries), archive_path)
    return archive_path


def _remove_tree(path: Optional[Path], job_id: str) -> None:
    if path is None:
        return
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError:
        LOGGER.exception("[%s] Failed to clean up %s", job_id, path)


def run_generation_job(
    job_id: str,
    request: JobRequest,
    layers_dir: Path,
    output_dir: Path,
    sink: ResultSink,
    config: Optional[GeneratorConfig] = None,
) -> JobResult:
    """Generate the collection described by *request* and package it as a zip.

    On success the result holds the archive path and the final item count.
    On failure the input and output directories are removed, a FAILED
    result is reported and the error is re-raised.
    """

    config = config or GeneratorConfig()
    layers_dir = Path(layers_dir)
    output_dir = Path(output_dir)
    LOGGER.info("[%s] Processing job for %d items", job_id, request.nft_count)

    try:
        catalog = build_catalog(layers_dir, allow_archives=config.allow_archives)
        catalog = apply_overrides(catalog, config.layers_order, config.rarity)

        assembler = CollectionAssembler(
            catalog,
            layers_dir,
            output_dir,
            collection_name=request.collection_name,
            description=request.collection_description,
            base_image_url=request.base_image_url,
            external_url=request.external_url,
            resolution=config.resolution,
            output_format=request.output_format,
            seed=config.seed,
            max_consecutive_rejections=config.max_consecutive_rejections,
            progress=False,
        )
        generated = assembler.run(request.nft_count)
        _remove_tree(layers_dir, job_id)

        if request.compress_images or config.compress_images:
            LOGGER.info("[%s] Optimizing file sizes in %s", job_id, generated.images_path)
            optimize_images(generated.images_path)

        archive_path = archive_directories(
            {"images": generated.images_path, "metadata": generated.metadata_path},
            output_dir / f"{job_id}.zip",
        )
        _remove_tree(generated.images_path, job_id)
        _remove_tree(generated.metadata_path, job_id)
    except Exception as exc:
        LOGGER.exception("[%s] Error processing job", job_id)
        _remove_tree(layers_dir, job_id)
        _remove_tree(output_dir, job_id)
        sink.report(job_id, JobResult(job_id, JobStatus.FAILED, error=str(exc)))
        raise

    result = JobResult(
        job_id,
        JobStatus.COMPLETED,
        final_count=generated.final_count,
        archive_path=archive_path,
        output_dir=output_dir,
    )
    sink.report(job_id, result)
    LOGGER.info("[%s] Job completed: %d items, archive %s", job_id, generated.final_count, archive_path)
    return result


def run_rewrite_job(
    archive_path: Path,
    gateway_url: str,
    cid: str,
    work_dir: Path,
    image_extension: Optional[str] = None,
) -> Path:
    """Rewrite a zipped metadata batch and return the path of the new zip.

    The result is ``<work_dir>/<work_dir name>.zip`` with the records under
    ``metadata/``. Extracted files are always removed.
    """

    work_dir = ensure_dir(Path(work_dir))
    extracted = work_dir / "updated_metadata"
    output_path = work_dir / f"{work_dir.name}.zip"
    try:
        extract_upload(archive_path, extracted)
        # records may sit at the archive root or one directory down
        record_dir = extracted
        if not any(extracted.glob("*.json")) and (extracted / "metadata").is_dir():
            record_dir = extracted / "metadata"
        rewrite_metadata(record_dir, gateway_url, cid, image_extension=image_extension)
        archive_directories({"metadata": record_dir}, output_path)
    finally:
        _remove_tree(extracted, work_dir.name)
    return output_path
