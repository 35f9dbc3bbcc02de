"""Configuration utilities for taxatree."""

from .policies import (
    CaptureKey,
    ExtractionPolicy,
    MergePolicy,
    Policies,
    ResolutionPolicy,
    load_policies,
)
from .settings import Settings, get_settings
from .validation import LineageSource, validate_configuration

__all__ = [
    "Settings",
    "get_settings",
    "Policies",
    "load_policies",
    "CaptureKey",
    "ExtractionPolicy",
    "ResolutionPolicy",
    "MergePolicy",
    "LineageSource",
    "validate_configuration",
]
