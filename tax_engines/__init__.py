"""
Module: tax_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure tax
    calculation engines.  This is the canonical import surface for callers
    closing orders.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import tax_kernel.domain, tax_kernel.exceptions and
    tax_kernel.logging_config (and sibling engine modules).
    MUST NOT import tax_kernel.services or tax_kernel.db.

Invariants enforced:
    - Purity: engines never read the clock or a database; every input is an
      explicit parameter.
    - Integer-only money: amounts are int minor units, rounded only inside
      ``tax_kernel.domain.money``.
    - Determinism: identical inputs always produce identical snapshots.

Failure modes:
    - ConfigurationError (and subclasses) when the effective configuration
      is invalid; never swallowed.

Usage:
    from tax_engines import SnapshotCalculator
    from tax_engines.jurisdiction import JurisdictionResolver
    from tax_engines.classifier import LineClassifier
"""

from tax_engines.classifier import (
    Bucket,
    Exempt,
    LineClassification,
    LineClassifier,
    TaxedAt,
    Unclassified,
    ZeroRated,
    rule_matches,
)
from tax_engines.jurisdiction import (
    EffectiveConfig,
    JurisdictionResolver,
    matches_locality,
)
from tax_engines.snapshot_calculator import SnapshotCalculator, validate_effective_config

__all__ = [
    "Bucket",
    "EffectiveConfig",
    "Exempt",
    "JurisdictionResolver",
    "LineClassification",
    "LineClassifier",
    "SnapshotCalculator",
    "TaxedAt",
    "Unclassified",
    "ZeroRated",
    "matches_locality",
    "rule_matches",
    "validate_effective_config",
]
