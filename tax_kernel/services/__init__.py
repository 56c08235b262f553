"""Services for the tax kernel (stateful side)."""

from tax_kernel.services.invoice_sequencer import (
    CounterState,
    InvoiceAssignment,
    InvoiceSequenceCounter,
    InvoiceSequencer,
    IssuedInvoice,
    format_invoice_number,
    period_key_for,
)
from tax_kernel.services.profile_registry import ProfileRegistry, ProfileVersion

__all__ = [
    "CounterState",
    "InvoiceAssignment",
    "InvoiceSequenceCounter",
    "InvoiceSequencer",
    "IssuedInvoice",
    "ProfileRegistry",
    "ProfileVersion",
    "format_invoice_number",
    "period_key_for",
]
