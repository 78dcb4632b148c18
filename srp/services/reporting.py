"""
Read model for listings, dashboards and payment batching.

Status is never queried from a column. Every report fetches the claims it
covers, fetches their process logs, derives each claim's status and only then
filters, groups or sums.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence
import uuid

from sqlmodel import Session, func, select

from srp.models.claim import Claim
from srp.models.process_log import ProcessLogEntry
from srp.services.status import ClaimStatus, ProcessType, as_utc, derive_status


EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class ClaimView:
    claim: Claim
    status: ClaimStatus
    process_logs: List[ProcessLogEntry]
    created_at: Optional[datetime]


@dataclass
class DashboardStats:
    pending_count: int
    approved_today: int
    total_paid_out: int
    average_processing_hours: int


@dataclass
class PaymentGroup:
    seat_user_id: int
    claimant_name: str
    total_payout: int = 0
    request_count: int = 0
    request_ids: List[str] = field(default_factory=list)


def group_logs(logs: Iterable[ProcessLogEntry]) -> Dict[uuid.UUID, List[ProcessLogEntry]]:
    grouped: Dict[uuid.UUID, List[ProcessLogEntry]] = {}
    for log in logs:
        grouped.setdefault(log.srp_request_id, []).append(log)

    # Newest first, like the log is shown to reviewers
    for entries in grouped.values():
        entries.sort(key=lambda e: (as_utc(e.occurred_at), e.id or 0), reverse=True)
    return grouped


def build_claim_views(
    claims: Sequence[Claim],
    logs: Iterable[ProcessLogEntry],
    status: Optional[str] = None,
) -> List[ClaimView]:
    """Attach derived status to claims, filter by status and sort newest first."""
    logs_by_claim = group_logs(logs)

    views = []
    for claim in claims:
        entries = logs_by_claim.get(claim.id, [])
        created = next(
            (e for e in entries if e.process_type == ProcessType.CREATED.value),
            None,
        )
        views.append(ClaimView(
            claim=claim,
            status=derive_status(entries),
            process_logs=entries,
            created_at=as_utc(created.occurred_at) if created else None,
        ))

    if status and status != "all":
        views = [v for v in views if v.status.value == status]

    # Claims without a created entry go last
    views.sort(
        key=lambda v: (v.created_at is not None, as_utc(v.created_at) if v.created_at else EARLIEST),
        reverse=True,
    )
    return views


def summarize_payments(views: Iterable[ClaimView]) -> List[PaymentGroup]:
    """Approved, unpaid claims with a payout, grouped by claimant."""
    groups: Dict[int, PaymentGroup] = {}

    for view in views:
        claim = view.claim
        if view.status != ClaimStatus.APPROVED or not claim.payout_amount:
            continue

        group = groups.get(claim.seat_user_id)
        if group is None:
            group = PaymentGroup(seat_user_id=claim.seat_user_id, claimant_name=claim.claimant_name)
            groups[claim.seat_user_id] = group

        group.total_payout += claim.payout_amount
        group.request_count += 1
        group.request_ids.append(str(claim.id))

    return sorted(groups.values(), key=lambda g: g.total_payout, reverse=True)


def average_processing_hours(logs_by_claim: Dict[uuid.UUID, List[ProcessLogEntry]]) -> int:
    """Mean hours from creation to the first approve/deny, over reviewed claims."""
    durations = []
    review_kinds = (ProcessType.APPROVE.value, ProcessType.DENY.value)

    for entries in logs_by_claim.values():
        created = [e for e in entries if e.process_type == ProcessType.CREATED.value]
        reviews = [e for e in entries if e.process_type in review_kinds]
        if not created or not reviews:
            continue

        created_at = as_utc(created[0].occurred_at)
        reviewed_at = min(as_utc(e.occurred_at) for e in reviews)
        durations.append((reviewed_at - created_at).total_seconds() / 3600)

    if not durations:
        return 0
    return round(sum(durations) / len(durations))


def _fetch_logs(session: Session, claim_ids: List[uuid.UUID]) -> List[ProcessLogEntry]:
    if not claim_ids:
        return []
    return list(session.exec(
        select(ProcessLogEntry).where(ProcessLogEntry.srp_request_id.in_(claim_ids))
    ).all())


def list_claims(
    session: Session,
    seat_user_id: Optional[int] = None,
    status: Optional[str] = None,
) -> List[ClaimView]:
    query = select(Claim)
    if seat_user_id is not None:
        query = query.where(Claim.seat_user_id == seat_user_id)

    claims = session.exec(query).all()
    logs = _fetch_logs(session, [c.id for c in claims])
    return build_claim_views(claims, logs, status)


def get_claim_view(session: Session, claim_id: uuid.UUID) -> Optional[ClaimView]:
    claim = session.get(Claim, claim_id)
    if not claim:
        return None
    views = build_claim_views([claim], _fetch_logs(session, [claim.id]))
    return views[0]


def payment_summary(session: Session) -> List[PaymentGroup]:
    return summarize_payments(list_claims(session))


def dashboard_stats(session: Session, seat_user_id: int, now: Optional[datetime] = None) -> DashboardStats:
    """
    Personal counters for ``seat_user_id`` plus alliance-wide review figures.

    pending_count and total_paid_out cover the user's own claims;
    approved_today counts approve entries since midnight (UTC) and
    average_processing_hours covers every reviewed claim.
    """
    now = now or datetime.now(timezone.utc)

    own = list_claims(session, seat_user_id=seat_user_id)
    pending_count = sum(1 for v in own if v.status == ClaimStatus.PENDING)
    total_paid_out = sum(
        v.claim.payout_amount or 0 for v in own if v.status == ClaimStatus.PAID
    )

    midnight = as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
    approved_today = session.exec(
        select(func.count(ProcessLogEntry.id))
        .where(ProcessLogEntry.process_type == ProcessType.APPROVE.value)
        .where(ProcessLogEntry.occurred_at >= midnight)
    ).one()

    review_logs = session.exec(
        select(ProcessLogEntry).where(
            ProcessLogEntry.process_type.in_([
                ProcessType.CREATED.value,
                ProcessType.APPROVE.value,
                ProcessType.DENY.value,
            ])
        )
    ).all()

    return DashboardStats(
        pending_count=pending_count,
        approved_today=approved_today,
        total_paid_out=total_paid_out,
        average_processing_hours=average_processing_hours(group_logs(review_logs)),
    )
