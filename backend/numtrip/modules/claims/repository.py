from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.orm import joinedload

from ...extensions import db
from ...models.audit_log import AuditLog
from ...models.business import Business
from ...models.business_claim import BusinessClaim
from ...models.enums import ClaimStatus
from ...models.promo_code import PromoCode
from ...models.validation import Validation


class ClaimRepository:
    """Persistence for claims and the ownership fields they drive.

    Writes are staged on the shared session; callers decide when to commit so
    a claim update and its ownership grant land in one transaction.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def find_business_by_id(self, business_id: int) -> Optional[Business]:
        return self.session.get(Business, business_id)

    def find_claim(self, business_id: int, user_id: int) -> Optional[BusinessClaim]:
        return self.session.execute(
            select(BusinessClaim).where(BusinessClaim.business_id == business_id, BusinessClaim.user_id == user_id)
        ).scalar_one_or_none()

    def find_claim_by_id(self, claim_id: int) -> Optional[BusinessClaim]:
        return self.session.execute(
            select(BusinessClaim).options(joinedload(BusinessClaim.business)).where(BusinessClaim.id == claim_id)
        ).scalar_one_or_none()

    def upsert_claim(self, business_id: int, user_id: int, values: Dict[str, Any]) -> BusinessClaim:
        """Create or overwrite the single claim row for (business, user).

        ``None`` values leave existing columns untouched. The flush surfaces a
        unique-constraint race as ``IntegrityError``.
        """
        claim = self.find_claim(business_id, user_id)
        if claim is None:
            claim = BusinessClaim(business_id=business_id, user_id=user_id)
            self.session.add(claim)
        for key, value in values.items():
            if value is None and key in ("claim_reason", "user_agent", "ip_address"):
                continue
            setattr(claim, key, value)
        self.session.flush()
        return claim

    def assign_owner(self, business_id: int, user_id: int, now: datetime) -> bool:
        """Grant ownership unless another user already holds it.

        Returns False when the guarded update matched no row. Loaded Business
        objects are not refreshed; the commit that follows expires them.
        """
        result = self.session.execute(
            update(Business)
            .where(
                Business.id == business_id,
                or_(Business.owner_id.is_(None), Business.owner_id == user_id),
            )
            .values(owner_id=user_id, verified=True, claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_claims_by_user(self, user_id: int) -> List[BusinessClaim]:
        return list(
            self.session.execute(
                select(BusinessClaim)
                .options(joinedload(BusinessClaim.business))
                .where(BusinessClaim.user_id == user_id)
                .order_by(BusinessClaim.created_at.desc(), BusinessClaim.id.desc())
            ).scalars()
        )

    def list_claims(self, status: Optional[ClaimStatus] = None, limit: int = 200) -> List[BusinessClaim]:
        stmt = select(BusinessClaim).options(joinedload(BusinessClaim.business), joinedload(BusinessClaim.user))
        if status is not None:
            stmt = stmt.where(BusinessClaim.status == status)
        stmt = stmt.order_by(BusinessClaim.created_at.desc(), BusinessClaim.id.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars())

    def count_claims_by_status(self) -> Dict[str, int]:
        rows = self.session.execute(
            select(BusinessClaim.status, func.count(BusinessClaim.id)).group_by(BusinessClaim.status)
        ).all()
        counts = {s.value: 0 for s in ClaimStatus}
        for status, n in rows:
            counts[ClaimStatus(status).value] = int(n)
        return counts

    def list_owned_businesses(self, user_id: int) -> List[Business]:
        return list(
            self.session.execute(
                select(Business)
                .options(joinedload(Business.city))
                .where(Business.owner_id == user_id)
                .order_by(Business.claimed_at.desc(), Business.id.desc())
            ).scalars()
        )

    def validation_stats(self, business_ids: Iterable[int]) -> Dict[int, Dict[str, int]]:
        ids = list(business_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(
                Validation.business_id,
                func.count(Validation.id),
                func.sum(case((Validation.is_correct.is_(True), 1), else_=0)),
            )
            .where(Validation.business_id.in_(ids))
            .group_by(Validation.business_id)
        ).all()
        return {int(bid): {"total": int(total), "positive": int(positive or 0)} for bid, total, positive in rows}

    def active_promo_codes(self, business_ids: Iterable[int]) -> Dict[int, List[PromoCode]]:
        ids = list(business_ids)
        out: Dict[int, List[PromoCode]] = {bid: [] for bid in ids}
        if not ids:
            return out
        rows = self.session.execute(
            select(PromoCode)
            .where(PromoCode.business_id.in_(ids), PromoCode.active.is_(True))
            .order_by(PromoCode.id)
        ).scalars()
        for promo in rows:
            out.setdefault(int(promo.business_id), []).append(promo)
        return out

    def record_audit(
        self,
        *,
        actor_user_id: Optional[int],
        action: str,
        entity_id: int,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        self.session.add(
            AuditLog(
                actor_user_id=actor_user_id,
                action=action,
                entity_type="business_claim",
                entity_id=entity_id,
                details=details,
                ip_address=ip_address,
            )
        )

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
