"""Business claim workflow: code issue, code verification and admin review.

Every status change goes through :func:`state_machine.transition`; the effects
attached to the chosen edge (clear the code, grant ownership, announce the
approval) are applied here. Ownership and the claim row are written in one
transaction, and the approval event is published only after that commit.
"""
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ...errors import BadRequest, Conflict, Forbidden, NotFound
from ...models.business import Business
from ...models.business_claim import BusinessClaim
from ...models.enums import ClaimStatus, VerificationType
from ...models.promo_code import PromoCode
from ..notifications.bus import CLAIM_APPROVED, EventBus
from ..notifications.senders import Notifier
from .repository import ClaimRepository
from .state_machine import ClaimEvent, Effect, InvalidTransition, Transition, transition

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def generate_code(length: int = 6) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def contact_matches(business: Business, verification_type: VerificationType, contact_value: str) -> bool:
    """Exact, case-sensitive match against the business's own contact fields."""
    if verification_type == VerificationType.EMAIL:
        return business.email is not None and business.email == contact_value
    return contact_value in [v for v in (business.phone, business.whatsapp) if v is not None]


@dataclass
class OwnedBusiness:
    business: Business
    promo_codes: List[PromoCode] = field(default_factory=list)
    total_validations: int = 0
    positive_validations: int = 0

    @property
    def validation_stats(self) -> Dict[str, int]:
        return {
            "total": self.total_validations,
            "positive": self.positive_validations,
            "negative": self.total_validations - self.positive_validations,
        }


class ClaimService:
    def __init__(
        self,
        repository: ClaimRepository,
        email_notifier: Notifier,
        sms_notifier: Notifier,
        events: EventBus,
        clock: Callable[[], datetime] = _utcnow,
        code_ttl_seconds: int = 3600,
        code_length: int = 6,
    ):
        self.repository = repository
        self.email_notifier = email_notifier
        self.sms_notifier = sms_notifier
        self.events = events
        self.clock = clock
        self.code_ttl = timedelta(seconds=code_ttl_seconds)
        self.code_length = code_length

    # Code issue

    def start_claim(
        self,
        business_id: int,
        user_id: int,
        verification_type: VerificationType | str,
        contact_value: str,
        claim_reason: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> BusinessClaim:
        return self._initiate(
            ClaimEvent.START, business_id, user_id, verification_type, contact_value, claim_reason, ip_address, user_agent
        )

    def resend_code(
        self,
        business_id: int,
        user_id: int,
        verification_type: VerificationType | str,
        contact_value: str,
        claim_reason: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> BusinessClaim:
        """Issue a fresh code, replacing any outstanding one.

        Unlike :meth:`start_claim` a pending claim is not a conflict; only an
        approved claim is refused.
        """
        return self._initiate(
            ClaimEvent.RESEND, business_id, user_id, verification_type, contact_value, claim_reason, ip_address, user_agent
        )

    def _initiate(
        self,
        event: ClaimEvent,
        business_id: int,
        user_id: int,
        verification_type: VerificationType | str,
        contact_value: str,
        claim_reason: str | None,
        ip_address: str | None,
        user_agent: str | None,
    ) -> BusinessClaim:
        verification_type = VerificationType(verification_type)
        business = self.repository.find_business_by_id(business_id)
        if business is None:
            raise NotFound(f"Business with ID {business_id} not found")
        if business.owner_id is not None and business.owner_id != user_id:
            raise Conflict("This business is already claimed by another user")

        existing = self.repository.find_claim(business_id, user_id)
        current = ClaimStatus(existing.status) if existing is not None else None
        try:
            step = transition(current, event)
        except InvalidTransition:
            if event == ClaimEvent.RESEND:
                raise Conflict("This claim has already been approved") from None
            raise Conflict("You already have a pending claim for this business") from None

        if not contact_matches(business, verification_type, contact_value):
            raise BadRequest("Contact value does not match any business contact information")

        code = generate_code(self.code_length) if step.has(Effect.ISSUE_CODE) else None
        expires_at = self._now() + self.code_ttl
        try:
            claim = self.repository.upsert_claim(
                business_id,
                user_id,
                {
                    "status": step.target,
                    "verification_type": verification_type,
                    "contact_value": contact_value,
                    "verification_code": code,
                    "code_expires_at": expires_at,
                    "claim_reason": claim_reason,
                    "ip_address": ip_address,
                    "user_agent": user_agent,
                },
            )
        except IntegrityError:
            self.repository.rollback()
            logger.warning("Concurrent claim start lost the race", extra={"business_id": business_id, "user_id": user_id})
            raise Conflict("You already have a pending claim for this business") from None

        if step.has(Effect.DISPATCH_CODE):
            notifier = self.email_notifier if verification_type == VerificationType.EMAIL else self.sms_notifier
            if not notifier.send_verification_code(contact_value, code, business.name):
                self.repository.rollback()
                logger.error(
                    "Verification code dispatch failed",
                    extra={"business_id": business_id, "user_id": user_id},
                )
                raise BadRequest("Failed to send verification code")

        self._audit(claim, user_id, event, current, step, ip_address)
        self.repository.commit()
        logger.info(
            "Claim %s: %s -> %s",
            event.value,
            current.value if current else "NEW",
            step.target.value,
            extra={"claim_id": claim.id, "business_id": business_id, "user_id": user_id},
        )
        return claim

    # Verification

    def verify_claim(
        self, claim_id: int, verification_code: str, user_id: int, ip_address: str | None = None
    ) -> BusinessClaim:
        claim = self.repository.find_claim_by_id(claim_id)
        if claim is None or claim.user_id != user_id:
            raise NotFound("Claim not found")
        if ClaimStatus(claim.status) != ClaimStatus.PENDING:
            raise BadRequest("Claim is not in a verifiable state")

        now = self._now()
        expires_at = _as_utc(claim.code_expires_at)
        if expires_at is None or now >= expires_at:
            step = transition(ClaimStatus.PENDING, ClaimEvent.CODE_EXPIRED)
            self._apply(claim, step, now)
            self._audit(claim, user_id, ClaimEvent.CODE_EXPIRED, ClaimStatus.PENDING, step, ip_address)
            self.repository.commit()
            logger.info("Claim code expired", extra={"claim_id": claim_id, "user_id": user_id})
            raise BadRequest("Verification code has expired")

        if verification_code != claim.verification_code:
            raise BadRequest("Invalid verification code")

        step = transition(ClaimStatus.PENDING, ClaimEvent.CODE_ACCEPTED)
        self._apply(claim, step, now)
        self._audit(claim, user_id, ClaimEvent.CODE_ACCEPTED, ClaimStatus.PENDING, step, ip_address)
        self.repository.commit()
        logger.info("Claim approved by code", extra={"claim_id": claim.id, "business_id": claim.business_id, "user_id": user_id})
        self._announce(claim, step)
        return claim

    # Administration

    def admin_action(
        self,
        claim_id: int,
        action: str,
        admin_notes: str | None = None,
        actor: Any = None,
        ip_address: str | None = None,
    ) -> BusinessClaim:
        if actor is None or not getattr(actor, "is_admin", False):
            raise Forbidden("Admin access required")
        claim = self.repository.find_claim_by_id(claim_id)
        if claim is None:
            raise NotFound("Claim not found")
        action = str(action or "").upper()
        if action == "APPROVE":
            event = ClaimEvent.ADMIN_APPROVE
        elif action == "REJECT":
            event = ClaimEvent.ADMIN_REJECT
        else:
            raise BadRequest("Action must be APPROVE or REJECT")

        previous = ClaimStatus(claim.status)
        step = transition(previous, event)
        claim.admin_notes = admin_notes
        self._apply(claim, step, self._now())
        self.repository.record_audit(
            actor_user_id=actor.id,
            action=f"claim.{action.lower()}",
            entity_id=claim.id,
            details={"from": previous.value, "to": step.target.value, "admin_notes": admin_notes},
            ip_address=ip_address,
        )
        self.repository.commit()
        logger.info(
            "Claim %s by admin: %s -> %s",
            action,
            previous.value,
            step.target.value,
            extra={"claim_id": claim.id, "business_id": claim.business_id, "user_id": actor.id},
        )
        self._announce(claim, step)
        return claim

    # Queries

    def get_claim(self, claim_id: int, user_id: int | None = None, actor: Any = None) -> BusinessClaim:
        claim = self.repository.find_claim_by_id(claim_id)
        if claim is None:
            raise NotFound("Claim not found")
        if user_id is not None and claim.user_id != user_id and not getattr(actor, "is_admin", False):
            raise NotFound("Claim not found")
        return claim

    def get_user_claims(self, user_id: int) -> List[BusinessClaim]:
        return self.repository.list_claims_by_user(user_id)

    def get_user_businesses(self, user_id: int) -> List[OwnedBusiness]:
        businesses = self.repository.list_owned_businesses(user_id)
        ids = [b.id for b in businesses]
        stats = self.repository.validation_stats(ids)
        promos = self.repository.active_promo_codes(ids)
        out = []
        for b in businesses:
            s = stats.get(b.id, {})
            out.append(
                OwnedBusiness(
                    business=b,
                    promo_codes=promos.get(b.id, []),
                    total_validations=s.get("total", 0),
                    positive_validations=s.get("positive", 0),
                )
            )
        return out

    # Internals

    def _now(self) -> datetime:
        return _as_utc(self.clock())

    def _apply(self, claim: BusinessClaim, step: Transition, now: datetime) -> None:
        """Write the edge's target status and effects onto the claim, uncommitted."""
        claim.status = step.target
        if step.has(Effect.CLEAR_CODE):
            claim.verification_code = None
            claim.code_expires_at = None
        if step.has(Effect.MARK_VERIFIED):
            claim.verified_at = now
        if step.target == ClaimStatus.APPROVED:
            claim.approved_at = now
        elif step.target == ClaimStatus.REJECTED:
            claim.approved_at = None
        if step.has(Effect.GRANT_OWNERSHIP):
            if not self.repository.assign_owner(claim.business_id, claim.user_id, now):
                self.repository.rollback()
                logger.warning(
                    "Ownership grant refused, business owned by another user",
                    extra={"claim_id": claim.id, "business_id": claim.business_id},
                )
                raise Conflict("This business is already claimed by another user")

    def _audit(
        self,
        claim: BusinessClaim,
        actor_id: int,
        event: ClaimEvent,
        previous: Optional[ClaimStatus],
        step: Transition,
        ip_address: str | None,
    ) -> None:
        # Same unit of work as the transition; rolled back with it
        self.repository.record_audit(
            actor_user_id=actor_id,
            action=f"claim.{event.value.lower()}",
            entity_id=claim.id,
            details={"from": previous.value if previous else None, "to": step.target.value},
            ip_address=ip_address,
        )

    def _announce(self, claim: BusinessClaim, step: Transition) -> None:
        if not step.has(Effect.NOTIFY_APPROVED):
            return
        self.events.publish(
            CLAIM_APPROVED,
            {
                "claim_id": claim.id,
                "business_id": claim.business_id,
                "user_id": claim.user_id,
                "verification_type": VerificationType(claim.verification_type).value,
                "contact_value": claim.contact_value,
                "business_name": claim.business.name if claim.business is not None else "",
            },
        )


def claim_service() -> ClaimService:
    """Build a service bound to the current app's collaborators."""
    from ...services import services

    svc = services()
    return ClaimService(
        ClaimRepository(),
        email_notifier=svc.email_notifier,
        sms_notifier=svc.sms_notifier,
        events=svc.events,
        clock=svc.clock,
        code_ttl_seconds=int(current_app.config.get("CLAIM_CODE_TTL_SECONDS", 3600)),
        code_length=int(current_app.config.get("CLAIM_CODE_LENGTH", 6)),
    )
