"""
Masking of tax identifiers and bank details.

Audit snapshots and API responses carry masked values only.
"""

import re
from typing import Optional


def mask_pan(pan: Optional[str]) -> Optional[str]:
    """
    Mask a PAN.

    Example:
        ABCDE1234F -> AB*****34F
    """
    if not pan:
        return None
    if len(pan) < 5:
        return '****'
    return pan[:2] + '*' * (len(pan) - 5) + pan[-3:]


def mask_aadhaar(aadhaar: Optional[str]) -> Optional[str]:
    """
    Mask an Aadhaar number, keeping the last four digits.

    Example:
        2345 6789 0123 -> ********0123
    """
    if not aadhaar:
        return None
    digits = re.sub(r'\D', '', aadhaar)
    if len(digits) < 4:
        return '****'
    return '*' * (len(digits) - 4) + digits[-4:]


def mask_bank_account(account: Optional[str]) -> Optional[str]:
    """
    Mask a bank account number.

    Example:
        123456789012 -> ****9012
    """
    if not account:
        return None
    if len(account) < 4:
        return '****'
    return '****' + account[-4:]


def mask_tax_id(tax_id_type: Optional[str], value: Optional[str]) -> Optional[str]:
    """Mask whichever identifier a coach has on file."""
    if tax_id_type is None or not value:
        return None
    if str(getattr(tax_id_type, "value", tax_id_type)) == "pan":
        return mask_pan(value)
    return mask_aadhaar(value)
