"""Trait-layer NFT collection generator."""

from .assembler import CollectionAssembler, GenerationResult, generate_collection
from .catalog import Layer, Trait, apply_overrides, build_catalog
from .compositor import compose, render_frames
from .errors import (
    CompositionError,
    DecodeError,
    EmptyCatalogError,
    ExhaustedCombinationSpaceError,
    MetadataParseError,
    NFTGenError,
    ValidationError,
)
from .jobs import InMemoryResultStore, JobRequest, JobResult, JobStatus
from .metadata import build_metadata
from .rewrite import rewrite_metadata
from .sampler import Combination, UniqueCombinationSampler, combination_space, pick_trait

__version__ = "0.1.0"
