"""
Claim status derived from the process log.

A claim has no stored status. Its status is whatever the most recent
status-changing process log entry says it is:

    created -> pending
    approve -> approved
    deny    -> denied
    pay     -> paid

Entries of other kinds (``updated``) are audit-only and never change the
status. The write path uses ``check_transition`` before appending.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Optional, Protocol, Tuple

from srp.errors import IllegalTransitionError


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    PAID = "paid"


class ProcessType(str, Enum):
    CREATED = "created"
    APPROVE = "approve"
    DENY = "deny"
    PAY = "pay"
    UPDATED = "updated"


PROCESS_TO_STATUS: Dict[str, ClaimStatus] = {
    ProcessType.CREATED.value: ClaimStatus.PENDING,
    ProcessType.APPROVE.value: ClaimStatus.APPROVED,
    ProcessType.DENY.value: ClaimStatus.DENIED,
    ProcessType.PAY.value: ClaimStatus.PAID,
}

# Status a claim must be in for each appendable kind
REQUIRED_STATUS: Dict[str, ClaimStatus] = {
    ProcessType.APPROVE.value: ClaimStatus.PENDING,
    ProcessType.DENY.value: ClaimStatus.PENDING,
    ProcessType.PAY.value: ClaimStatus.APPROVED,
    ProcessType.UPDATED.value: ClaimStatus.PENDING,
}


class LogEntry(Protocol):
    id: Optional[int]
    occurred_at: datetime
    process_type: str


def as_utc(value: datetime) -> datetime:
    # Naive values are UTC; some databases drop the offset on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _recency_key(entry: LogEntry) -> Tuple[datetime, int]:
    return as_utc(entry.occurred_at), entry.id if entry.id is not None else 0


def _process_type_value(entry: LogEntry) -> str:
    kind = entry.process_type
    return kind.value if isinstance(kind, ProcessType) else kind


def latest_status_entry(entries: Iterable[LogEntry]) -> Optional[LogEntry]:
    """Most recent status-changing entry by (timestamp, insertion order)."""
    changing = [e for e in entries if _process_type_value(e) in PROCESS_TO_STATUS]
    if not changing:
        return None
    return max(changing, key=_recency_key)


def derive_status(entries: Iterable[LogEntry]) -> ClaimStatus:
    """
    Derive the current status of a claim from its process log.

    The input order does not matter. An empty log (or one with only audit
    entries) is pending. Sequences the write path should have refused, such as
    an approve followed by a deny, still resolve to the most recent entry;
    they are a write-path bug, not something this function reports.
    """
    latest = latest_status_entry(entries)
    if latest is None:
        return ClaimStatus.PENDING
    return PROCESS_TO_STATUS[_process_type_value(latest)]


def check_transition(current: ClaimStatus, process_type: str) -> None:
    """Raise IllegalTransitionError unless ``process_type`` may follow ``current``."""
    kind = process_type.value if isinstance(process_type, ProcessType) else process_type

    if kind == ProcessType.CREATED.value:
        raise IllegalTransitionError("A claim can only be created once")

    if kind not in REQUIRED_STATUS:
        raise IllegalTransitionError(f"Unknown process type: {kind}")

    required = REQUIRED_STATUS[kind]
    if current != required:
        raise IllegalTransitionError(
            f"Cannot {kind} a claim that is {current.value}; it must be {required.value}"
        )


def next_status(current: ClaimStatus, process_type: str) -> ClaimStatus:
    check_transition(current, process_type)
    kind = process_type.value if isinstance(process_type, ProcessType) else process_type
    return PROCESS_TO_STATUS.get(kind, current)
