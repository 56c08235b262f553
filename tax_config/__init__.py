"""
tax_config -- loading and validation of tenant tax profiles.

Responsibility:
    Turns profile documents (dicts, YAML files) into validated, frozen
    ``TaxProfile`` instances.  This is the only place that knows the
    document's camelCase field names.

Architecture position:
    Configuration -- sits above ``tax_kernel``.  The kernel and the engines
    MUST NEVER import from ``tax_config``.
"""

from __future__ import annotations

from pathlib import Path

from tax_config.loader import (
    compute_checksum,
    load_profile_document,
    load_profile_yaml,
    load_yaml_file,
)
from tax_config.validator import ProfileValidationResult, check_profile, validate_profile

# Sample profiles shipped with the package
SAMPLE_SETS_DIR = Path(__file__).parent / "sets"

__all__ = [
    "ProfileValidationResult",
    "SAMPLE_SETS_DIR",
    "check_profile",
    "compute_checksum",
    "load_profile_document",
    "load_profile_yaml",
    "load_yaml_file",
    "validate_profile",
]
