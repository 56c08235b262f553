"""
Typed Exception Hierarchy for the Tax Kernel.

Every error carries a ``code`` class attribute (machine-readable, API-safe)
and stores its context as attributes rather than only in the message.
Callers catch by type, never by message text.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TaxEngineError (base)
    |
    +-- ConfigurationError          fatal, never retried
    |   +-- UnknownTaxCodeError
    |   +-- InvalidRateError
    |   +-- DuplicateRateCodeError
    |   +-- InvalidProfileDocumentError
    |   +-- InvoiceNumberingDisabledError
    |
    +-- TransientError              caller retries the whole close operation
    |   +-- SequenceConflictError
    |
    +-- ProfileNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Generic invalid profile
                | UNKNOWN_TAX_CODE            | Surcharge/delivery taxCode is dangling
                | INVALID_RATE                | Negative or non-integer bps
                | DUPLICATE_RATE_CODE         | Two rates share a code in one list
                | INVALID_PROFILE_DOCUMENT    | Unknown enum value / wrong field type
                | INVOICE_NUMBERING_DISABLED  | issue() called with numbering off
----------------|-----------------------------|-----------------------------------------
Transient       | TRANSIENT_ERROR             | Generic retryable failure
                | SEQUENCE_CONFLICT           | Counter conflicts exceeded retry budget
----------------|-----------------------------|-----------------------------------------
Registry        | PROFILE_NOT_FOUND           | No such tenant / profile version

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        snapshot = calculator.calculate(order, profile)
    except ConfigurationError as e:
        # The order must not close with an invalid snapshot.
        block_close(reason=e.code)

    try:
        issued = sequencer.issue(tenant_id, numbering, now, order_id=order_id)
    except TransientError:
        retry_close_later()
"""


class TaxEngineError(Exception):
    """
    Base exception for all tax engine errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "TAX_ENGINE_ERROR"

    def details(self) -> dict[str, object]:
        """Context attributes set by the subclass constructor."""
        return {k: v for k, v in vars(self).items() if not k.startswith("_")}


# Configuration-related exceptions


class ConfigurationError(TaxEngineError):
    """Tax profile is invalid. Never retried, never swallowed."""

    code: str = "CONFIGURATION_ERROR"


class UnknownTaxCodeError(ConfigurationError):
    """A surcharge or delivery policy references a rate code that does not exist."""

    code: str = "UNKNOWN_TAX_CODE"

    def __init__(
        self,
        tax_code: str | None,
        referenced_by: str,
        available_codes: tuple[str, ...] = (),
        jurisdiction_code: str = "",
    ):
        self.tax_code = tax_code
        self.referenced_by = referenced_by
        self.available_codes = available_codes
        self.jurisdiction_code = jurisdiction_code
        scope = f" (jurisdiction {jurisdiction_code})" if jurisdiction_code else ""
        super().__init__(
            f"{referenced_by} references unknown tax code {tax_code!r}{scope}; "
            f"available: {list(available_codes)}"
        )


class InvalidRateError(ConfigurationError):
    """A basis-point value is negative or not an integer."""

    code: str = "INVALID_RATE"

    def __init__(self, rule_code: str, field_name: str, value: object):
        self.rule_code = rule_code
        self.field_name = field_name
        self.value = value
        super().__init__(
            f"Rule {rule_code!r} has invalid {field_name}: {value!r} "
            "(must be a non-negative integer)"
        )


class DuplicateRateCodeError(ConfigurationError):
    """Two rate rules in the same list share a code."""

    code: str = "DUPLICATE_RATE_CODE"

    def __init__(self, rate_code: str, jurisdiction_code: str = ""):
        self.rate_code = rate_code
        self.jurisdiction_code = jurisdiction_code
        scope = f" in jurisdiction {jurisdiction_code}" if jurisdiction_code else ""
        super().__init__(f"Duplicate rate code {rate_code!r}{scope}")


class InvalidProfileDocumentError(ConfigurationError):
    """A profile document field has an unknown value or the wrong type."""

    code: str = "INVALID_PROFILE_DOCUMENT"

    def __init__(self, field_path: str, value: object, reason: str):
        self.field_path = field_path
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid profile field {field_path}={value!r}: {reason}")


class InvoiceNumberingDisabledError(ConfigurationError):
    """Invoice issuance was requested while numbering is disabled."""

    code: str = "INVOICE_NUMBERING_DISABLED"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Invoice numbering is disabled for tenant {tenant_id}")


# Transient exceptions


class TransientError(TaxEngineError):
    """Retryable failure. The caller retries the whole close operation."""

    code: str = "TRANSIENT_ERROR"


class SequenceConflictError(TransientError):
    """Invoice counter increment kept conflicting past the retry budget."""

    code: str = "SEQUENCE_CONFLICT"

    def __init__(self, tenant_id: str, series: str, attempts: int):
        self.tenant_id = tenant_id
        self.series = series
        self.attempts = attempts
        super().__init__(
            f"Invoice counter for tenant {tenant_id} series {series!r} "
            f"still conflicting after {attempts} attempts"
        )


# Registry exceptions


class ProfileNotFoundError(TaxEngineError):
    """No profile (or profile version) is registered for the tenant."""

    code: str = "PROFILE_NOT_FOUND"

    def __init__(self, tenant_id: str, version: int | None = None):
        self.tenant_id = tenant_id
        self.version = version
        what = f"version {version}" if version is not None else "active profile"
        super().__init__(f"No tax profile {what} for tenant {tenant_id}")
