"""Utility functions."""

from coachpay.utils.audit import log_action
from coachpay.utils.masking import mask_aadhaar, mask_bank_account, mask_pan, mask_tax_id

__all__ = [
    "log_action",
    "mask_pan",
    "mask_aadhaar",
    "mask_bank_account",
    "mask_tax_id",
]
