"""
Profile Loader (``tax_config.loader``).

Responsibility
--------------
Turns a tenant's tax profile document (camelCase keys, optional fields,
as stored by the admin screens) into the typed ``TaxProfile`` model.
Optional-field fallthrough ends here: engines only see closed variants.

Architecture position
---------------------
**Config layer** -- sits above ``tax_kernel.domain``.  The kernel and the
engines MUST NEVER import from ``tax_config``.

Invariants enforced
-------------------
* Unknown enum strings (rounding, delivery mode, reset policy,
  ``appliesTo``) raise ``InvalidProfileDocumentError``; nothing silently
  defaults to another variant.
* Basis points must be ints; a float or string raises ``InvalidRateError``.
* ``zeroRated: true`` on a rate loads it with ``rate_bps = 0``.
* A present but empty override list (``ratesOverride: []``) is kept as an
  empty override, not dropped.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid document  -> ``ConfigurationError`` subclass.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from tax_config.validator import validate_profile
from tax_kernel.domain.money import RoundingMode
from tax_kernel.domain.rules import (
    AllItems,
    AsLine,
    B2BConfig,
    DeliveryPolicy,
    FilteredItems,
    InvoiceNumberingConfig,
    JurisdictionMatch,
    JurisdictionRule,
    OutOfScope,
    ResetPolicy,
    SurchargeRule,
    TaxProfile,
    TaxRateRule,
)
from tax_kernel.exceptions import InvalidProfileDocumentError, InvalidRateError
from tax_kernel.logging_config import get_logger
from tax_kernel.utils.hashing import hash_payload

logger = get_logger("config.loader")

_DELIVERY_MODES = ("as_line", "out_of_scope")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise InvalidProfileDocumentError(f"{path}.{key}", value, "required")
    return value


def _mapping(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise InvalidProfileDocumentError(path, value, "expected a mapping")
    return value


def _list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise InvalidProfileDocumentError(path, value, "expected a list")
    return value


def _strings(value: Any, path: str) -> tuple[str, ...]:
    if value is None:
        return ()
    return tuple(str(v) for v in _list(value, path))


def _bool(value: Any, path: str, default: bool = False) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidProfileDocumentError(path, value, "expected true or false")
    return value


def _bps(value: Any, rule_code: str, field_name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRateError(rule_code, field_name, value)
    return value


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def parse_rounding(value: Any, path: str = "rounding") -> RoundingMode:
    try:
        return RoundingMode(value)
    except ValueError:
        raise InvalidProfileDocumentError(
            path, value, "expected 'half_up' or 'half_even'"
        ) from None


def parse_reset_policy(value: Any, path: str) -> ResetPolicy:
    if value is None:
        return ResetPolicy.NEVER
    try:
        return ResetPolicy(value)
    except ValueError:
        raise InvalidProfileDocumentError(
            path, value, "expected never, yearly, monthly or daily"
        ) from None


# ---------------------------------------------------------------------------
# Rule parsers
# ---------------------------------------------------------------------------


def parse_rate(data: dict[str, Any], path: str = "rates[]") -> TaxRateRule:
    """
    Parse one rate rule.

    ``appliesTo: all`` gives ``AllItems``; anything absent gives
    ``FilteredItems`` (whose empty filters match every item).
    """
    data = _mapping(data, path)
    code = str(_require(data, "code", path))
    order_types = _strings(data.get("orderTypeIn"), f"{path}.orderTypeIn")

    applies_to_raw = data.get("appliesTo")
    if applies_to_raw == "all":
        applies_to: AllItems | FilteredItems = AllItems(order_types=order_types)
    elif applies_to_raw is None:
        applies_to = FilteredItems(
            categories=_strings(data.get("itemCategoryIn"), f"{path}.itemCategoryIn"),
            tags_in=_strings(data.get("itemTagIn"), f"{path}.itemTagIn"),
            tags_excluded=_strings(data.get("excludeItemTagIn"), f"{path}.excludeItemTagIn"),
            order_types=order_types,
        )
    else:
        raise InvalidProfileDocumentError(f"{path}.appliesTo", applies_to_raw, "expected 'all'")

    zero_rated = _bool(data.get("zeroRated"), f"{path}.zeroRated")
    rate_bps = 0 if zero_rated else _bps(data.get("rateBps"), code, "rateBps")

    return TaxRateRule(
        code=code,
        rate_bps=rate_bps,
        applies_to=applies_to,
        label=str(data.get("label") or ""),
        exempt=_bool(data.get("exempt"), f"{path}.exempt"),
    )


def parse_surcharge(data: dict[str, Any], path: str = "surcharges[]") -> SurchargeRule:
    data = _mapping(data, path)
    code = str(_require(data, "code", path))
    return SurchargeRule(
        code=code,
        percent_bps=_bps(data.get("percentBps"), code, "percentBps"),
        label=str(data.get("label") or ""),
        order_types=_strings(data.get("applyWhenOrderTypeIn"), f"{path}.applyWhenOrderTypeIn"),
        taxable=_bool(data.get("taxable"), f"{path}.taxable"),
        tax_code=_optional_str(data.get("taxCode")),
    )


def parse_delivery(data: dict[str, Any], path: str = "delivery") -> DeliveryPolicy:
    data = _mapping(data, path)
    mode = data.get("mode", "out_of_scope")
    if mode not in _DELIVERY_MODES:
        raise InvalidProfileDocumentError(
            f"{path}.mode", mode, "expected 'as_line' or 'out_of_scope'"
        )
    if mode == "out_of_scope":
        return OutOfScope()
    return AsLine(
        taxable=_bool(data.get("taxable"), f"{path}.taxable"),
        tax_code=_optional_str(data.get("taxCode")),
    )


def parse_jurisdiction(data: dict[str, Any], path: str = "jurisdictions[]") -> JurisdictionRule:
    """
    Parse one jurisdiction rule.

    Absent override keys mean "inherit"; present keys replace the base
    value, even when they hold an empty list.
    """
    data = _mapping(data, path)
    code = str(_require(data, "code", path))
    match = _mapping(data.get("match") or {}, f"{path}.match")

    rates = None
    if "ratesOverride" in data and data["ratesOverride"] is not None:
        rates = tuple(
            parse_rate(r, f"{path}.ratesOverride[{i}]")
            for i, r in enumerate(_list(data["ratesOverride"], f"{path}.ratesOverride"))
        )

    surcharges = None
    if "surchargesOverride" in data and data["surchargesOverride"] is not None:
        surcharges = tuple(
            parse_surcharge(s, f"{path}.surchargesOverride[{i}]")
            for i, s in enumerate(
                _list(data["surchargesOverride"], f"{path}.surchargesOverride")
            )
        )

    delivery = None
    if data.get("deliveryOverride") is not None:
        delivery = parse_delivery(data["deliveryOverride"], f"{path}.deliveryOverride")

    prices_include_tax = None
    if data.get("pricesIncludeTaxOverride") is not None:
        prices_include_tax = _bool(
            data["pricesIncludeTaxOverride"], f"{path}.pricesIncludeTaxOverride"
        )

    rounding = None
    if data.get("roundingOverride") is not None:
        rounding = parse_rounding(data["roundingOverride"], f"{path}.roundingOverride")

    return JurisdictionRule(
        code=code,
        match=JurisdictionMatch(
            country=_optional_str(match.get("country")),
            state=_optional_str(match.get("state")),
            city=_optional_str(match.get("city")),
            zip_prefix=_optional_str(match.get("zipPrefix")),
        ),
        rates=rates,
        surcharges=surcharges,
        delivery=delivery,
        prices_include_tax=prices_include_tax,
        rounding=rounding,
    )


def parse_invoice_numbering(
    data: dict[str, Any],
    path: str = "b2bConfig.invoiceNumbering",
) -> InvoiceNumberingConfig:
    data = _mapping(data, path)
    return InvoiceNumberingConfig(
        enabled=_bool(data.get("enabled"), f"{path}.enabled"),
        series=str(data.get("series") or ""),
        prefix=str(data.get("prefix") or ""),
        suffix=str(data.get("suffix") or ""),
        padding=data.get("padding") or 0,
        reset_policy=parse_reset_policy(data.get("resetPolicy"), f"{path}.resetPolicy"),
    )


def parse_b2b(data: dict[str, Any] | None, path: str = "b2bConfig") -> B2BConfig:
    if data is None:
        return B2BConfig()
    data = _mapping(data, path)
    numbering = None
    if data.get("invoiceNumbering") is not None:
        numbering = parse_invoice_numbering(data["invoiceNumbering"], f"{path}.invoiceNumbering")
    return B2BConfig(
        tax_exempt_with_tax_id=_bool(data.get("taxExemptWithTaxId"), f"{path}.taxExemptWithTaxId"),
        invoice_numbering=numbering,
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def load_profile_document(
    data: dict[str, Any],
    profile_id: str | None = None,
    validate: bool = True,
) -> TaxProfile:
    """
    Build a ``TaxProfile`` from its document form.

    Preconditions:
        - ``data`` is the parsed document (dict from JSON or YAML).
    Postconditions:
        - Returns a frozen ``TaxProfile``; with ``validate`` it has also
          passed ``validate_profile`` (cross references included).
    Raises:
        ConfigurationError: if the document is invalid.
    """
    data = _mapping(data, "<profile>")

    rounding = RoundingMode.HALF_UP
    if data.get("rounding") is not None:
        rounding = parse_rounding(data["rounding"])

    delivery: DeliveryPolicy = OutOfScope()
    if data.get("delivery") is not None:
        delivery = parse_delivery(data["delivery"])

    profile = TaxProfile(
        country=str(_require(data, "country", "<profile>")),
        currency=str(_require(data, "currency", "<profile>")),
        rates=tuple(
            parse_rate(r, f"rates[{i}]")
            for i, r in enumerate(_list(data.get("rates") or [], "rates"))
        ),
        prices_include_tax=_bool(data.get("pricesIncludeTax"), "pricesIncludeTax"),
        rounding=rounding,
        surcharges=tuple(
            parse_surcharge(s, f"surcharges[{i}]")
            for i, s in enumerate(_list(data.get("surcharges") or [], "surcharges"))
        ),
        delivery=delivery,
        jurisdictions=tuple(
            parse_jurisdiction(j, f"jurisdictions[{i}]")
            for i, j in enumerate(_list(data.get("jurisdictions") or [], "jurisdictions"))
        ),
        b2b=parse_b2b(data.get("b2bConfig")),
        profile_id=profile_id or _optional_str(data.get("id")),
    )

    if validate:
        validate_profile(profile)

    logger.info("tax_profile_loaded", extra={
        "profile_id": profile.profile_id,
        "country": profile.country,
        "currency": profile.currency,
        "rate_count": len(profile.rates),
        "surcharge_count": len(profile.surcharges),
        "jurisdiction_count": len(profile.jurisdictions),
        "checksum": compute_checksum(data),
    })
    return profile


def load_profile_yaml(path: Path | str, validate: bool = True) -> TaxProfile:
    """Load a profile from a YAML file; the file stem is the default profile id."""
    path = Path(path)
    data = load_yaml_file(path)
    return load_profile_document(data, profile_id=data.get("id") or path.stem, validate=validate)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    SHA-256 of the document's canonical JSON.

    Identical documents always produce identical checksums, whatever the
    key order of the source file.
    """
    return hash_payload(data)
