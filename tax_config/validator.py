"""
Profile Validator (``tax_config.validator``).

Responsibility
--------------
Checks a typed ``TaxProfile`` for cross-reference problems the
constructors cannot see: rate codes referenced by surcharges and
delivery, duplicate rate codes, and the same checks again for every
jurisdiction's merged configuration.

Architecture position
---------------------
**Config layer** -- called by ``tax_config.loader`` after parsing, before a
profile is published.  The snapshot calculator repeats the
effective-configuration checks at calculation time, so a profile that
skipped validation still cannot produce a snapshot.

Invariants enforced
-------------------
* Every taxable surcharge and taxable as-line delivery names a rate code
  that exists in the rate list it will be evaluated against.
* Rate codes are unique within each rate list.

Failure modes
-------------
* ``validate_profile`` raises the first collected ``ConfigurationError``.
* Warnings (unreachable rates, duplicate jurisdiction codes) never raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tax_kernel.domain.rules import (
    AllItems,
    AsLine,
    DeliveryPolicy,
    SurchargeRule,
    TaxProfile,
    TaxRateRule,
)
from tax_kernel.exceptions import (
    ConfigurationError,
    DuplicateRateCodeError,
    UnknownTaxCodeError,
)
from tax_kernel.logging_config import get_logger

logger = get_logger("config.validator")


@dataclass
class ProfileValidationResult:
    """
    Result of profile validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block publication but should be reviewed.
    """

    errors: list[ConfigurationError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, error: ConfigurationError) -> None:
        self.errors.append(error)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def check_profile(profile: TaxProfile) -> ProfileValidationResult:
    """Collect every error and warning without raising."""
    result = ProfileValidationResult()

    _check_rate_list(profile.rates, "", result)
    _check_references(profile.rates, profile.surcharges, profile.delivery, "", result)

    seen_jurisdictions: set[str] = set()
    for rule in profile.jurisdictions:
        if rule.code in seen_jurisdictions:
            result.add_warning(f"Jurisdiction code {rule.code!r} appears more than once")
        seen_jurisdictions.add(rule.code)

        if rule.match.specificity == 0:
            result.add_warning(
                f"Jurisdiction {rule.code!r} has an empty match and applies to every order"
            )

        rates = rule.rates if rule.rates is not None else profile.rates
        surcharges = rule.surcharges if rule.surcharges is not None else profile.surcharges
        delivery = rule.delivery if rule.delivery is not None else profile.delivery

        if rule.rates is not None:
            _check_rate_list(rule.rates, rule.code, result)
        _check_references(rates, surcharges, delivery, rule.code, result)

    return result


def validate_profile(profile: TaxProfile) -> ProfileValidationResult:
    """
    Validate a profile, raising on the first error.

    Raises:
        ConfigurationError: the first error found.
    """
    result = check_profile(profile)

    for warning in result.warnings:
        logger.warning("tax_profile_validation_warning", extra={
            "profile_id": profile.profile_id,
            "detail": warning,
        })

    if not result.is_valid:
        first = result.errors[0]
        logger.error("tax_profile_invalid", extra={
            "profile_id": profile.profile_id,
            "error_code": first.code,
            "error_count": len(result.errors),
        })
        raise first

    return result


def _check_rate_list(
    rates: tuple[TaxRateRule, ...],
    jurisdiction_code: str,
    result: ProfileValidationResult,
) -> None:
    seen: set[str] = set()
    catch_all: str | None = None
    for rate in rates:
        if rate.code in seen:
            result.add_error(DuplicateRateCodeError(rate.code, jurisdiction_code))
        seen.add(rate.code)

        if catch_all is not None:
            result.add_warning(
                f"Rate {rate.code!r} can never match: {catch_all!r} before it applies to all items"
            )
        elif isinstance(rate.applies_to, AllItems) and not rate.applies_to.order_types:
            catch_all = rate.code


def _check_references(
    rates: tuple[TaxRateRule, ...],
    surcharges: tuple[SurchargeRule, ...],
    delivery: DeliveryPolicy,
    jurisdiction_code: str,
    result: ProfileValidationResult,
) -> None:
    codes = tuple(r.code for r in rates)

    for surcharge in surcharges:
        if surcharge.taxable and surcharge.tax_code not in codes:
            result.add_error(UnknownTaxCodeError(
                surcharge.tax_code,
                f"surcharge {surcharge.code!r}",
                available_codes=codes,
                jurisdiction_code=jurisdiction_code,
            ))

    if isinstance(delivery, AsLine) and delivery.taxable and delivery.tax_code not in codes:
        result.add_error(UnknownTaxCodeError(
            delivery.tax_code,
            "delivery",
            available_codes=codes,
            jurisdiction_code=jurisdiction_code,
        ))
