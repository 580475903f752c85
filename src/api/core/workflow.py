"""
Farm verification status machine

Every status change of a farm goes through ``next_status`` so that the
allowed edges live in one table.
"""

from enum import Enum
from typing import Dict, Tuple

from src.api.core.errors import ConflictError


class FarmStatus(str, Enum):
    PENDING_VERIFICATION = "PENDING_VERIFICATION"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    NEEDS_UPDATE = "NEEDS_UPDATE"


class FarmEvent(str, Enum):
    VERIFY = "verify"
    REJECT = "reject"
    REQUEST_UPDATE = "request_update"
    FARMER_RESUBMIT = "farmer_resubmit"


TRANSITIONS: Dict[Tuple[FarmStatus, FarmEvent], FarmStatus] = {
    (FarmStatus.PENDING_VERIFICATION, FarmEvent.VERIFY): FarmStatus.VERIFIED,
    (FarmStatus.PENDING_VERIFICATION, FarmEvent.REJECT): FarmStatus.REJECTED,
    (FarmStatus.PENDING_VERIFICATION, FarmEvent.REQUEST_UPDATE): FarmStatus.NEEDS_UPDATE,
    (FarmStatus.NEEDS_UPDATE, FarmEvent.FARMER_RESUBMIT): FarmStatus.PENDING_VERIFICATION,
    (FarmStatus.NEEDS_UPDATE, FarmEvent.VERIFY): FarmStatus.VERIFIED,
    (FarmStatus.NEEDS_UPDATE, FarmEvent.REJECT): FarmStatus.REJECTED,
    # Re-capturing the boundary of an already verified farm
    (FarmStatus.VERIFIED, FarmEvent.VERIFY): FarmStatus.VERIFIED,
}


def next_status(current: str, event: FarmEvent) -> FarmStatus:
    """
    Resolve the status a farm moves to when ``event`` happens

    Raises:
        ConflictError: If the table has no edge for (current, event)
    """
    state = FarmStatus(current)
    try:
        return TRANSITIONS[(state, FarmEvent(event))]
    except KeyError:
        raise ConflictError(
            f"Cannot apply '{FarmEvent(event).value}' to a farm in status {state.value}"
        )


def allowed_events(current: str) -> list[FarmEvent]:
    state = FarmStatus(current)
    return [event for (source, event) in TRANSITIONS if source == state]
