"""
Write path for SRP claims.

Every change to a claim goes through here so the process log and the claim's
own fields stay in step: the log entry and the field updates are committed in
one transaction, and the transition is checked against the status re-derived
inside that transaction. A conditional update on ``Claim.log_version`` makes
the check a compare-and-swap, so two reviewers racing on the same claim cannot
both win.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from srp.errors import (
    ConcurrentUpdateError,
    DuplicateKillmailError,
    IllegalTransitionError,
    InvalidInputError,
    NotFoundError,
    SrpError,
    StoreUnavailableError,
)
from srp.models.claim import Claim
from srp.models.fleet import Fleet
from srp.models.process_log import ProcessLogEntry
from srp.services.status import ClaimStatus, ProcessType, check_transition, derive_status
from srp.utils.form_validator import ValidatedCreateClaim

logger = logging.getLogger(__name__)


def get_process_logs(session: Session, claim_id: uuid.UUID) -> List[ProcessLogEntry]:
    """Log entries of one claim, newest first."""
    return list(session.exec(
        select(ProcessLogEntry)
        .where(ProcessLogEntry.srp_request_id == claim_id)
        .order_by(ProcessLogEntry.occurred_at.desc(), ProcessLogEntry.id.desc())
    ).all())


def get_claim_status(session: Session, claim_id: uuid.UUID) -> ClaimStatus:
    return derive_status(get_process_logs(session, claim_id))


def create_claim(
    session: Session,
    seat_user_id: int,
    claimant_name: str,
    data: ValidatedCreateClaim,
) -> Claim:
    """Insert a claim together with its ``created`` log entry."""
    existing = session.exec(
        select(Claim).where(Claim.killmail_id == data.killmail_id)
    ).first()
    if existing:
        raise DuplicateKillmailError(f"Killmail {data.killmail_id} has already been submitted")

    if data.fleet_id is not None and not session.get(Fleet, data.fleet_id):
        raise NotFoundError("Fleet not found")

    claim = Claim(
        seat_user_id=seat_user_id,
        claimant_name=claimant_name,
        killmail_id=data.killmail_id,
        victim_character_id=data.victim_character_id,
        victim_character_name=data.victim_character_name,
        ship_type_id=data.ship_type_id,
        ship_group_name=data.ship_group_name,
        isk_amount=data.isk_amount,
        operation_type=data.operation_type,
        is_special_role=data.operation_type == "fleet" and data.is_special_role,
        loss_description=data.loss_description,
        fleet_id=data.fleet_id,
        log_version=1,
    )

    try:
        session.add(claim)
        session.flush()
        session.add(ProcessLogEntry(
            srp_request_id=claim.id,
            process_type=ProcessType.CREATED.value,
            by_main_char=claimant_name,
        ))
        session.commit()
    except IntegrityError as e:
        # Lost a race with another submission of the same killmail
        session.rollback()
        raise DuplicateKillmailError(f"Killmail {data.killmail_id} has already been submitted") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Failed to create claim for killmail %s", data.killmail_id)
        raise StoreUnavailableError("Could not save the claim, please retry") from e

    session.refresh(claim)
    logger.info("Claim %s created for killmail %s by %s", claim.id, claim.killmail_id, claimant_name)
    return claim


def _field_updates(
    kind: str,
    now: datetime,
    actor: str,
    note: Optional[str],
    payout_amount: Optional[int],
    loss_description: Optional[str],
) -> dict:
    if kind == ProcessType.APPROVE.value:
        if payout_amount is None:
            raise InvalidInputError("Approving a claim requires a payout amount")
        if payout_amount < 0:
            raise InvalidInputError("Payout amount must not be negative")
        return {
            "payout_amount": payout_amount,
            "reviewer_name": actor,
            "reviewer_note": note,
            "reviewed_at": now,
        }

    if kind == ProcessType.DENY.value:
        return {
            "reviewer_name": actor,
            "reviewer_note": note,
            "reviewed_at": now,
        }

    if kind == ProcessType.PAY.value:
        return {"paid_at": now}

    if kind == ProcessType.UPDATED.value:
        return {"loss_description": loss_description}

    return {}


def append_process_log(
    session: Session,
    claim_id: uuid.UUID,
    process_type: str,
    actor: str,
    note: Optional[str] = None,
    payout_amount: Optional[int] = None,
    loss_description: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Tuple[Claim, ProcessLogEntry]:
    """
    Append one lifecycle event to a claim and apply its side effects.

    Args:
        session: Open database session.
        claim_id: Claim to act on.
        process_type: "approve", "deny", "pay" or "updated".
        actor: Display name recorded on the entry (and as reviewer).
        note: Optional note, also stored as the reviewer note on approve/deny.
        payout_amount: Whole-ISK payout; required for approve.
        loss_description: New description for "updated" entries.
        expected_version: ``log_version`` the caller last saw. Defaults to the
            version read here, which still guards against writers that commit
            between this read and the update.

    Raises:
        NotFoundError: No such claim.
        IllegalTransitionError: The derived status does not allow the event.
        ConcurrentUpdateError: Another writer changed the claim first.
        StoreUnavailableError: The database rejected the write.
    """
    kind = process_type.value if isinstance(process_type, ProcessType) else process_type

    # Any refusal ends the transaction so the row lock is released
    try:
        claim = session.exec(
            select(Claim)
            .where(Claim.id == claim_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if not claim:
            raise NotFoundError("Request not found")

        current = derive_status(get_process_logs(session, claim.id))
        check_transition(current, kind)

        now = datetime.now(timezone.utc)
        values = _field_updates(kind, now, actor, note, payout_amount, loss_description)

        seen_version = claim.log_version if expected_version is None else expected_version
        values["log_version"] = seen_version + 1

        entry = ProcessLogEntry(
            srp_request_id=claim.id,
            process_type=kind,
            by_main_char=actor,
            note=note,
            occurred_at=now,
        )

        result = session.connection().execute(
            update(Claim)
            .where(Claim.id == claim.id)
            .where(Claim.log_version == seen_version)
            .values(**values)
        )
        if result.rowcount != 1:
            logger.warning("Concurrent update on claim %s while applying %s", claim_id, kind)
            raise ConcurrentUpdateError("The request was changed by someone else, reload and try again")

        session.add(entry)
        session.commit()
    except SrpError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Failed to apply %s to claim %s", kind, claim_id)
        raise StoreUnavailableError("Could not save the change, please retry") from e

    session.refresh(claim)
    session.refresh(entry)
    logger.info("Claim %s: %s by %s (was %s)", claim.id, kind, actor, current.value)
    return claim, entry


def mark_paid(session: Session, claim_ids: Iterable[uuid.UUID], actor: str) -> Tuple[int, int]:
    """
    Append ``pay`` to every approved claim in ``claim_ids``.

    Claims that are not approved (already paid, denied, pending or missing)
    are skipped, so submitting the same batch twice pays nothing twice.

    Returns:
        (marked_count, skipped_count)
    """
    marked = 0
    skipped = 0

    for claim_id in claim_ids:
        try:
            append_process_log(session, claim_id, ProcessType.PAY.value, actor)
            marked += 1
        except (NotFoundError, IllegalTransitionError, ConcurrentUpdateError) as e:
            logger.info("Skipping payment of claim %s: %s", claim_id, e.message)
            skipped += 1

    return marked, skipped
