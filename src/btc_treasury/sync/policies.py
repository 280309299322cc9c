"""Row validation policies selected per dataset."""
from __future__ import annotations

import enum
import logging

logger = logging.getLogger(__name__)


class RowValidationError(ValueError):
    """A single upstream row failed date or number normalisation."""


class RowPolicy(str, enum.Enum):
    # Dashboard series: drop the bad row, keep the rest.
    SKIP_INVALID_ROWS = "skip-invalid-rows"
    # Entity ledger: one bad row aborts the whole sync.
    ABORT_ON_INVALID_ROW = "abort-on-invalid-row"


def reject_row(policy: RowPolicy, message: str) -> None:
    """Apply ``policy`` to an invalid row: log and return, or raise."""
    if policy is RowPolicy.ABORT_ON_INVALID_ROW:
        logger.error("Aborting sync: %s", message)
        raise RowValidationError(message)
    logger.warning("Skipping row: %s", message)
