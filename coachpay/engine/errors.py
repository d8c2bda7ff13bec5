"""
Settlement engine errors.

Configuration and split errors are fatal: they block the triggering
action entirely. "No eligible coach" is not an error; it is the
pending-manual outcome of the matcher.
"""

from typing import Any, Dict, Optional


class SettlementError(Exception):
    """Base exception for engine errors.

    ``details`` carries the input snapshot so the failure can be audited.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationMissing(SettlementError):
    """Rate, threshold or split configuration is absent."""


class InvalidSplitConfig(SettlementError):
    """Split percentages are out of range or do not sum to 100."""


class InvalidSplitInput(SettlementError):
    """Amounts or attribution cannot produce a valid split."""


class IneligibleCoach(SettlementError):
    """A coach cannot take the requested assignment."""


class LeadClosed(SettlementError):
    """The lead is cancelled and cannot be assigned."""


class BatchAlreadyExists(SettlementError):
    """A batch line for this period and coach was already committed."""


class AttributionConflict(SettlementError):
    """Stored attribution disagrees with what a caller tried to write.

    Never raised to users. Services log it as a data-integrity warning.
    """


class RecordNotFound(SettlementError):
    """A referenced lead, coach, enrollment or batch line does not exist."""


class DuplicateCapture(SettlementError):
    """The lead or payment was already converted into an enrollment."""
