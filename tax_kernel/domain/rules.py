"""
Rules -- Immutable tax profile model.

Responsibility:
    The typed form of a tenant's tax profile: rate rules, surcharges,
    delivery policy, jurisdiction overrides, and B2B / invoice numbering
    settings.  Optional-field-heavy profile documents are turned into these
    types by ``tax_config.loader``; engines only ever see these types.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - Basis points are non-negative ints (checked at construction; a
      violation raises ``InvalidRateError``, a ``ConfigurationError``).
    - Rate filters, delivery modes and reset policies are closed sets of
      variants, so "first matching rule wins" never depends on which
      optional fields happen to be present.
    - Every collection is a tuple; a constructed profile cannot be mutated.

Non-goals:
    - Does NOT check cross references (surcharge tax codes against rate
      codes); the effective rate list is only known after jurisdiction
      resolution.  See ``tax_config.validator`` and the snapshot calculator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from tax_kernel.domain.currency import CurrencyRegistry
from tax_kernel.domain.money import RoundingMode
from tax_kernel.exceptions import InvalidProfileDocumentError, InvalidRateError


def normalize_order_type(order_type: str | None) -> str:
    """'Dine_In ' -> 'dine-in'. Clients send underscores, profiles use hyphens."""
    if not order_type:
        return ""
    return order_type.strip().lower().replace("_", "-")


def _check_bps(rule_code: str, field_name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidRateError(rule_code, field_name, value)


def _freeze(obj: object, name: str, values) -> None:
    object.__setattr__(obj, name, tuple(values or ()))


def _freeze_order_types(obj: object, values) -> None:
    object.__setattr__(
        obj, "order_types", tuple(normalize_order_type(v) for v in (values or ()))
    )


# ---------------------------------------------------------------------------
# Rate rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllItems:
    """Rate applies to every item (optionally only for some order types)."""

    order_types: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _freeze_order_types(self, self.order_types)


@dataclass(frozen=True)
class FilteredItems:
    """
    Rate applies to items passing every non-empty filter.

    Empty filter = no constraint.  ``tags_excluded`` always vetoes.
    """

    categories: tuple[str, ...] = ()
    tags_in: tuple[str, ...] = ()
    tags_excluded: tuple[str, ...] = ()
    order_types: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _freeze(self, "categories", self.categories)
        _freeze(self, "tags_in", self.tags_in)
        _freeze(self, "tags_excluded", self.tags_excluded)
        _freeze_order_types(self, self.order_types)


RateFilter = Union[AllItems, FilteredItems]


@dataclass(frozen=True)
class TaxRateRule:
    """
    One rate in a profile's ordered rate list.

    ``rate_bps == 0`` marks matching lines zero-rated (taxable at 0%), which
    is reported separately from exempt.  ``exempt=True`` takes matching lines
    out of the tax base altogether.
    """

    code: str
    rate_bps: int
    applies_to: RateFilter = field(default_factory=AllItems)
    label: str = ""
    exempt: bool = False

    def __post_init__(self) -> None:
        _check_bps(self.code, "rate_bps", self.rate_bps)

    @property
    def is_zero_rated(self) -> bool:
        return self.rate_bps == 0 and not self.exempt


# ---------------------------------------------------------------------------
# Surcharges and delivery
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SurchargeRule:
    """Percentage fee on the order subtotal, e.g. a 10% service charge."""

    code: str
    percent_bps: int
    label: str = ""
    order_types: tuple[str, ...] = ()
    taxable: bool = False
    tax_code: str | None = None

    def __post_init__(self) -> None:
        _check_bps(self.code, "percent_bps", self.percent_bps)
        _freeze_order_types(self, self.order_types)

    def applies_to_order_type(self, order_type: str) -> bool:
        return not self.order_types or normalize_order_type(order_type) in self.order_types


@dataclass(frozen=True)
class OutOfScope:
    """Delivery fee is outside the tax calculation; it only reaches the grand total."""

    mode = "out_of_scope"


@dataclass(frozen=True)
class AsLine:
    """Delivery fee is booked as a synthetic line, taxed with ``tax_code`` when taxable."""

    taxable: bool = False
    tax_code: str | None = None

    mode = "as_line"


DeliveryPolicy = Union[OutOfScope, AsLine]


# ---------------------------------------------------------------------------
# Jurisdictions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JurisdictionMatch:
    """Locality criteria. Absent fields do not constrain the match."""

    country: str | None = None
    state: str | None = None
    city: str | None = None
    zip_prefix: str | None = None

    @property
    def specificity(self) -> int:
        """Tier of the most specific criterion: zip 4 > city 3 > state 2 > country 1."""
        if self.zip_prefix:
            return 4
        if self.city:
            return 3
        if self.state:
            return 2
        if self.country:
            return 1
        return 0


@dataclass(frozen=True)
class JurisdictionRule:
    """
    Locality-scoped override of the base configuration.

    ``None`` means "no override".  A present override replaces the base
    value wholesale -- an empty ``rates`` tuple replaces the base rates
    with nothing.
    """

    code: str
    match: JurisdictionMatch = field(default_factory=JurisdictionMatch)
    rates: tuple[TaxRateRule, ...] | None = None
    surcharges: tuple[SurchargeRule, ...] | None = None
    delivery: DeliveryPolicy | None = None
    prices_include_tax: bool | None = None
    rounding: RoundingMode | None = None

    def __post_init__(self) -> None:
        if self.rates is not None:
            _freeze(self, "rates", self.rates)
        if self.surcharges is not None:
            _freeze(self, "surcharges", self.surcharges)


# ---------------------------------------------------------------------------
# B2B and invoice numbering
# ---------------------------------------------------------------------------


class ResetPolicy(str, Enum):
    """When an invoice counter starts again at 1."""

    NEVER = "never"
    YEARLY = "yearly"
    MONTHLY = "monthly"
    DAILY = "daily"


@dataclass(frozen=True)
class InvoiceNumberingConfig:
    enabled: bool = False
    series: str = ""
    prefix: str = ""
    suffix: str = ""
    padding: int = 0
    reset_policy: ResetPolicy = ResetPolicy.NEVER

    def __post_init__(self) -> None:
        if isinstance(self.padding, bool) or not isinstance(self.padding, int) or self.padding < 0:
            raise InvalidProfileDocumentError(
                "b2bConfig.invoiceNumbering.padding",
                self.padding,
                "must be a non-negative integer",
            )


@dataclass(frozen=True)
class B2BConfig:
    tax_exempt_with_tax_id: bool = False
    invoice_numbering: InvoiceNumberingConfig | None = None


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxProfile:
    """
    A tenant's tax configuration.

    Contract:
        Immutable once built.  A closed order's snapshot may reference it,
        so edits are made by publishing a new version (see
        ``tax_kernel.services.profile_registry``).

    Guarantees:
        - ``currency`` is an upper-case ISO 4217 code.
        - ``rates`` order is significant: the first matching rule wins.
    """

    country: str
    currency: str
    rates: tuple[TaxRateRule, ...] = ()
    prices_include_tax: bool = False
    rounding: RoundingMode = RoundingMode.HALF_UP
    surcharges: tuple[SurchargeRule, ...] = ()
    delivery: DeliveryPolicy = field(default_factory=OutOfScope)
    jurisdictions: tuple[JurisdictionRule, ...] = ()
    b2b: B2BConfig = field(default_factory=B2BConfig)
    profile_id: str | None = None

    def __post_init__(self) -> None:
        if not CurrencyRegistry.is_valid(self.currency):
            raise InvalidProfileDocumentError(
                "currency", self.currency, "not an ISO 4217 currency code"
            )
        object.__setattr__(self, "currency", CurrencyRegistry.normalize(self.currency))
        _freeze(self, "rates", self.rates)
        _freeze(self, "surcharges", self.surcharges)
        _freeze(self, "jurisdictions", self.jurisdictions)

    def rate_codes(self) -> tuple[str, ...]:
        return tuple(r.code for r in self.rates)
