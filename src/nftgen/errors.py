"""Exception types raised by the generator pipeline."""
from pathlib import Path
from typing import Union


class NFTGenError(Exception):
    """Base class for every error the pipeline raises on purpose."""


class ValidationError(NFTGenError):
    """Missing or invalid job parameters, or a malformed upload."""


class EmptyCatalogError(NFTGenError):
    """No layer with at least one usable trait was found."""


class DecodeError(NFTGenError):
    """A trait image could not be decoded while building the catalog."""

    def __init__(self, file: Union[str, Path], layer: str, reason: str = ""):
        self.file = str(file)
        self.layer = layer
        message = f"Invalid image file {Path(file).name} in layer {layer}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class CompositionError(NFTGenError):
    """One item could not be composited."""


class ExhaustedCombinationSpaceError(NFTGenError):
    """The sampler kept drawing combinations it had already emitted."""

    def __init__(self, distinct: int, target: int, rejections: int):
        self.distinct = distinct
        self.target = target
        self.rejections = rejections
        super().__init__(
            f"Could not find a new unique combination after {rejections} consecutive draws "
            f"({distinct} distinct combinations drawn, {target} requested)"
        )


class MetadataParseError(NFTGenError):
    """A metadata record is not valid JSON."""

    def __init__(self, path: Union[str, Path], reason: str = ""):
        self.path = str(path)
        super().__init__(f"Malformed metadata file {Path(path).name}: {reason}")
