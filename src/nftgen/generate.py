#!/usr/bin/env python3
"""
Layered NFT collection generator.

- One folder per layer under the assets root, one image per trait.
- Weighted random pick per layer (all weights 1 unless config.json says otherwise).
- Uniqueness ensured by a sorted layer:trait fingerprint.
- Writes <out>/images/{id}.{png|gif} and <out>/metadata/{id}.json.

Examples:
    nftgen generate --assets layers --out output --num 50 --name "Pixel Cat" --description "Cats"
    nftgen rewrite --metadata output/metadata --cid Qm123
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .assembler import generate_collection
from .catalog import apply_overrides, build_catalog
from .config import DEFAULT_GATEWAY_URL, OUTPUT_FORMATS, GeneratorConfig, load_config
from .errors import NFTGenError
from .jobs import JobRequest, new_job_id
from .rewrite import rewrite_metadata
from .worker import archive_directories, optimize_images

LOGGER = logging.getLogger("nftgen.generate")


# ------------------------------------------- Logging -------------------------------------------
def _configure_logging(log_file: Optional[Path] = None, verbose: bool = False) -> None:
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    level = logging.DEBUG if verbose else logging.INFO
    handlers: List[logging.Handler] = []
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8", delay=True)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)
    logging.basicConfig(level=level, handlers=handlers, force=True)


# ------------------------------------------- Commands -------------------------------------------
def cmd_generate(args: argparse.Namespace, config: GeneratorConfig) -> int:
    request = JobRequest.from_payload(
        {
            "nft_count": args.num,
            "collection_name": args.name,
            "collection_description": args.description,
            "base_image_url": args.base_url or config.base_image_url,
            "external_url": args.external_url,
            "output_format": config.output_format,
            "compress_images": config.compress_images,
        },
        max_nft_count=config.max_nft_count,
    )

    catalog = build_catalog(Path(args.assets), allow_archives=config.allow_archives)
    catalog = apply_overrides(catalog, config.layers_order, config.rarity)
    LOGGER.info("Detected assets (per layer):")
    for layer in catalog:
        LOGGER.info(" %s: %d", layer.name, len(layer.traits))

    out_dir = Path(args.out)
    result = generate_collection(
        catalog,
        Path(args.assets),
        out_dir,
        request.nft_count,
        collection_name=request.collection_name,
        description=request.collection_description,
        base_image_url=request.base_image_url,
        external_url=request.external_url,
        resolution=config.resolution,
        output_format=request.output_format,
        seed=config.seed,
        max_consecutive_rejections=config.max_consecutive_rejections,
    )

    if request.compress_images:
        optimize_images(result.images_path)

    if args.zip:
        archive_directories(
            {"images": result.images_path, "metadata": result.metadata_path},
            out_dir / f"{new_job_id()}.zip",
        )
    LOGGER.info("Done. Generated %d items. Files saved to: %s", result.final_count, out_dir)
    return 0


def cmd_rewrite(args: argparse.Namespace, config: GeneratorConfig) -> int:
    count = rewrite_metadata(Path(args.metadata), args.gateway, args.cid, image_extension=args.extension)
    LOGGER.info("Updated %d metadata files", count)
    return 0


# ------------------------------------------------ CLI ------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Layered NFT generator (weighted traits, uniqueness)")
    parser.add_argument("--config", type=str, default="config.json", help="config json path")
    parser.add_argument("--log-file", type=str, default=None, help="also write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="generate images and metadata")
    gen.add_argument("--assets", type=str, default="assets", help="assets root folder (one folder per layer)")
    gen.add_argument("--out", type=str, default="output", help="output folder")
    gen.add_argument("--num", type=int, default=10, help="How many NFTs to generate")
    gen.add_argument("--name", type=str, required=True, help="collection name")
    gen.add_argument("--description", type=str, required=True, help="collection description")
    gen.add_argument("--resolution", type=int, default=None, help="output resolution (overrides config)")
    gen.add_argument("--format", type=str, choices=OUTPUT_FORMATS, default=None, help="output image format")
    gen.add_argument("--seed", type=int, default=None, help="random seed (optional)")
    gen.add_argument("--base-url", type=str, default=None, help="image URL prefix written to metadata")
    gen.add_argument("--external-url", type=str, default=None, help="external_url written to metadata")
    gen.add_argument("--compress", action="store_true", default=None, help="optimize output file sizes")
    gen.add_argument("--archives", action="store_true", default=None, help="accept .zip files as traits")
    gen.add_argument("--zip", action="store_true", help="also package images/ and metadata/ into a zip")
    gen.set_defaults(func=cmd_generate)

    rw = sub.add_parser("rewrite", help="point metadata image fields at published images")
    rw.add_argument("--metadata", type=str, required=True, help="folder of {id}.json files")
    rw.add_argument("--cid", type=str, required=True, help="content identifier of the image folder")
    rw.add_argument("--gateway", type=str, default=DEFAULT_GATEWAY_URL, help="gateway base URL")
    rw.add_argument("--extension", type=str, choices=OUTPUT_FORMATS, default=None,
                    help="image extension (default: keep each record's own)")
    rw.set_defaults(func=cmd_rewrite)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {
        "resolution": getattr(args, "resolution", None),
        "output_format": getattr(args, "format", None),
        "seed": getattr(args, "seed", None),
        "compress_images": getattr(args, "compress", None),
        "allow_archives": getattr(args, "archives", None),
        "log_file": args.log_file,
    }
    try:
        config = load_config(Path(args.config), overrides)
    except NFTGenError as exc:
        _configure_logging(verbose=args.verbose)
        LOGGER.error("%s", exc)
        return 1

    _configure_logging(config.log_file, verbose=args.verbose)
    try:
        return args.func(args, config)
    except NFTGenError as exc:
        LOGGER.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
