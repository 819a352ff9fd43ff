from datetime import timedelta

import pytest

from numtrip.errors import BadRequest, Conflict, Forbidden, NotFound
from numtrip.extensions import db
from numtrip.models.audit_log import AuditLog
from numtrip.models.business import Business
from numtrip.models.business_claim import BusinessClaim
from numtrip.models.enums import ClaimStatus, VerificationType
from numtrip.models.promo_code import PromoCode
from numtrip.models.validation import Validation
from numtrip.modules.claims.service import claim_service, contact_matches, generate_code


def _naive(dt):
    return dt.replace(tzinfo=None) if dt is not None else None


@pytest.fixture
def claims(email_notifier, sms_notifier, clock):
    return claim_service()


def _start_email(claims, business, user, **kwargs):
    return claims.start_claim(business.id, user.id, VerificationType.EMAIL, business.email, **kwargs)


def _status(claim_id):
    db.session.expire_all()
    return db.session.get(BusinessClaim, claim_id).status


# Code issue


def test_start_claim_creates_pending_claim_and_emails_code(claims, business, user, email_notifier, clock):
    claim = _start_email(claims, business, user, claim_reason="I manage the front desk")

    assert claim.status == ClaimStatus.PENDING
    assert len(claim.verification_code) == 6 and claim.verification_code.isdigit()
    assert _naive(claim.code_expires_at) == _naive(clock.now + timedelta(hours=1))
    assert claim.claim_reason == "I manage the front desk"
    assert email_notifier.codes == [(business.email, claim.verification_code, business.name)]


def test_start_claim_over_sms_uses_sms_notifier(claims, make_business, user, email_notifier, sms_notifier):
    business = make_business(phone="3001234567", whatsapp="3109876543")

    claim = claims.start_claim(business.id, user.id, "SMS", "3109876543")

    assert claim.verification_type == VerificationType.SMS
    assert sms_notifier.codes[0][0] == "3109876543"
    assert email_notifier.codes == []


def test_start_claim_records_provenance(claims, business, user):
    claim = _start_email(claims, business, user, ip_address="203.0.113.9", user_agent="pytest")
    assert claim.ip_address == "203.0.113.9"
    assert claim.user_agent == "pytest"


def test_start_claim_unknown_business(claims, user):
    with pytest.raises(NotFound, match="Business with ID 999 not found"):
        claims.start_claim(999, user.id, VerificationType.EMAIL, "x@example.com")


def test_start_claim_business_owned_by_someone_else(claims, make_business, make_user, user):
    owner = make_user()
    business = make_business(owner_id=owner.id)

    with pytest.raises(Conflict, match="already claimed by another user"):
        _start_email(claims, business, user)


def test_start_claim_business_owned_by_same_user_is_allowed(claims, make_business, user):
    business = make_business(owner_id=user.id)
    claim = _start_email(claims, business, user)
    assert claim.status == ClaimStatus.PENDING


def test_start_claim_with_pending_claim_conflicts(claims, business, user):
    _start_email(claims, business, user)
    with pytest.raises(Conflict, match="already have a pending claim"):
        _start_email(claims, business, user)


def test_start_claim_after_approval_conflicts(claims, business, user):
    claim = _start_email(claims, business, user)
    claims.verify_claim(claim.id, claim.verification_code, user.id)

    with pytest.raises(Conflict, match="already have a pending claim"):
        _start_email(claims, business, user)


@pytest.mark.parametrize(
    "verification_type, value",
    [
        (VerificationType.EMAIL, "RESERVAS@hotelcaribe.co"),
        (VerificationType.EMAIL, "reservas@hotelcaribe.co "),
        (VerificationType.EMAIL, "5756501160"),
        (VerificationType.SMS, "reservas@hotelcaribe.co"),
        (VerificationType.PHONE_CALL, "+57 5756501160"),
    ],
)
def test_start_claim_contact_must_match_exactly(claims, business, user, verification_type, value):
    with pytest.raises(BadRequest, match="does not match any business contact"):
        claims.start_claim(business.id, user.id, verification_type, value)
    assert BusinessClaim.query.count() == 0


def test_contact_gate_ignores_missing_fields(make_business):
    business = make_business(email=None, phone=None, whatsapp=None)
    assert not contact_matches(business, VerificationType.EMAIL, "")
    assert not contact_matches(business, VerificationType.SMS, "")


def test_failed_dispatch_leaves_no_claim_behind(claims, business, user, email_notifier):
    email_notifier.fail = True

    with pytest.raises(BadRequest, match="Failed to send verification code"):
        _start_email(claims, business, user)

    assert BusinessClaim.query.count() == 0


def test_start_claim_reopens_rejected_claim(claims, business, user, admin):
    claim = _start_email(claims, business, user)
    claims.admin_action(claim.id, "REJECT", "Not the owner", actor=admin)

    reopened = _start_email(claims, business, user)

    assert reopened.id == claim.id
    assert reopened.status == ClaimStatus.PENDING
    assert BusinessClaim.query.count() == 1


def test_start_claim_reopens_expired_claim(claims, business, user, clock):
    claim = _start_email(claims, business, user)
    clock.advance(hours=2)
    with pytest.raises(BadRequest):
        claims.verify_claim(claim.id, claim.verification_code, user.id)

    reopened = _start_email(claims, business, user)
    assert reopened.status == ClaimStatus.PENDING


def test_start_claim_keeps_reason_when_restarted_without_one(claims, business, user, admin):
    claim = _start_email(claims, business, user, claim_reason="Owner since 2010")
    claims.admin_action(claim.id, "REJECT", None, actor=admin)

    reopened = _start_email(claims, business, user)
    assert reopened.claim_reason == "Owner since 2010"


# Resend


def test_resend_twice_keeps_one_row_with_latest_code(claims, business, user, email_notifier, clock):
    claims.resend_code(business.id, user.id, VerificationType.EMAIL, business.email)
    clock.advance(minutes=10)
    second = claims.resend_code(business.id, user.id, VerificationType.EMAIL, business.email)

    assert BusinessClaim.query.count() == 1
    stored = db.session.get(BusinessClaim, second.id)
    assert stored.verification_code == email_notifier.codes[-1][1]
    assert _naive(stored.code_expires_at) == _naive(clock.now + timedelta(hours=1))
    assert len(email_notifier.codes) == 2


def test_resend_on_pending_claim_replaces_code(claims, business, user, email_notifier):
    claim = _start_email(claims, business, user)
    claims.resend_code(business.id, user.id, VerificationType.EMAIL, business.email)

    new_code = email_notifier.codes[-1][1]
    db.session.expire_all()
    assert db.session.get(BusinessClaim, claim.id).verification_code == new_code


def test_resend_on_approved_claim_conflicts(claims, business, user):
    claim = _start_email(claims, business, user)
    claims.verify_claim(claim.id, claim.verification_code, user.id)

    with pytest.raises(Conflict, match="already been approved"):
        claims.resend_code(business.id, user.id, VerificationType.EMAIL, business.email)


def test_failed_resend_keeps_previous_code(claims, business, user, email_notifier):
    claim = _start_email(claims, business, user)
    original = claim.verification_code
    email_notifier.fail = True

    with pytest.raises(BadRequest):
        claims.resend_code(business.id, user.id, VerificationType.EMAIL, business.email)

    db.session.expire_all()
    assert db.session.get(BusinessClaim, claim.id).verification_code == original


# Verification


def test_verify_claim_approves_and_grants_ownership(claims, business, user, email_notifier, clock):
    claim = _start_email(claims, business, user)
    clock.advance(minutes=5)

    verified = claims.verify_claim(claim.id, claim.verification_code, user.id)

    assert verified.status == ClaimStatus.APPROVED
    assert verified.verification_code is None
    assert verified.code_expires_at is None
    assert _naive(verified.verified_at) == _naive(clock.now)
    assert _naive(verified.approved_at) == _naive(clock.now)
    owned = db.session.get(Business, business.id)
    assert owned.owner_id == user.id
    assert owned.verified is True
    assert _naive(owned.claimed_at) == _naive(clock.now)
    assert email_notifier.notices == [(business.email, business.name)]


def test_verify_sms_claim_sends_no_email_notice(claims, make_business, user, email_notifier, sms_notifier):
    business = make_business(phone="3001234567")
    claim = claims.start_claim(business.id, user.id, VerificationType.SMS, "3001234567")

    claims.verify_claim(claim.id, claim.verification_code, user.id)

    assert email_notifier.notices == []
    assert sms_notifier.notices == []


def test_approval_notice_failure_does_not_undo_approval(claims, business, user, email_notifier):
    claim = _start_email(claims, business, user)
    email_notifier.fail = True

    verified = claims.verify_claim(claim.id, claim.verification_code, user.id)

    assert verified.status == ClaimStatus.APPROVED
    assert _status(claim.id) == ClaimStatus.APPROVED


def test_verify_wrong_code_keeps_claim_pending(claims, business, user):
    claim = _start_email(claims, business, user)
    wrong = "000000" if claim.verification_code != "000000" else "111111"

    for _ in range(3):
        with pytest.raises(BadRequest, match="Invalid verification code"):
            claims.verify_claim(claim.id, wrong, user.id)

    assert _status(claim.id) == ClaimStatus.PENDING
    assert claims.verify_claim(claim.id, claim.verification_code, user.id).status == ClaimStatus.APPROVED


def test_verify_expired_code_moves_claim_to_expired(claims, business, user, clock):
    claim = _start_email(claims, business, user)
    code = claim.verification_code
    clock.advance(hours=1, seconds=1)

    with pytest.raises(BadRequest, match="code has expired"):
        claims.verify_claim(claim.id, code, user.id)

    assert _status(claim.id) == ClaimStatus.EXPIRED


def test_verify_at_exact_expiry_instant_is_expired(claims, business, user, clock):
    claim = _start_email(claims, business, user)
    clock.advance(hours=1)

    with pytest.raises(BadRequest, match="code has expired"):
        claims.verify_claim(claim.id, claim.verification_code, user.id)


def test_expired_claim_stays_expired_even_if_clock_goes_back(claims, business, user, clock):
    claim = _start_email(claims, business, user)
    code = claim.verification_code
    clock.advance(hours=2)
    with pytest.raises(BadRequest):
        claims.verify_claim(claim.id, code, user.id)

    clock.advance(hours=-2)
    with pytest.raises(BadRequest, match="not in a verifiable state"):
        claims.verify_claim(claim.id, code, user.id)
    assert _status(claim.id) == ClaimStatus.EXPIRED


def test_verify_approved_claim_is_not_verifiable(claims, business, user):
    claim = _start_email(claims, business, user)
    code = claim.verification_code
    claims.verify_claim(claim.id, code, user.id)

    with pytest.raises(BadRequest, match="not in a verifiable state"):
        claims.verify_claim(claim.id, code, user.id)


def test_verify_unknown_claim(claims, user):
    with pytest.raises(NotFound, match="Claim not found"):
        claims.verify_claim(12345, "123456", user.id)


def test_verify_requires_the_claimant(claims, business, user, make_user):
    claim = _start_email(claims, business, user)
    other = make_user()

    with pytest.raises(NotFound):
        claims.verify_claim(claim.id, claim.verification_code, other.id)
    assert _status(claim.id) == ClaimStatus.PENDING


def test_only_one_claimant_can_win_ownership(claims, business, make_user):
    first, second = make_user(), make_user()
    claim_a = _start_email(claims, business, first)
    claim_b = _start_email(claims, business, second)

    claims.verify_claim(claim_a.id, claim_a.verification_code, first.id)
    with pytest.raises(Conflict, match="already claimed by another user"):
        claims.verify_claim(claim_b.id, claim_b.verification_code, second.id)

    db.session.expire_all()
    assert db.session.get(Business, business.id).owner_id == first.id
    assert db.session.get(BusinessClaim, claim_b.id).status == ClaimStatus.PENDING


def test_conditional_owner_update_refuses_foreign_owner(claims, business, make_user, clock):
    first, second = make_user(), make_user()
    claims.repository.assign_owner(business.id, first.id, clock.now)
    claims.repository.commit()

    assert claims.repository.assign_owner(business.id, second.id, clock.now) is False
    assert claims.repository.assign_owner(business.id, first.id, clock.now) is True
    claims.repository.rollback()


# Administration


def test_admin_approve_grants_ownership_and_audits(claims, business, user, admin, email_notifier, clock):
    claim = _start_email(claims, business, user)

    approved = claims.admin_action(claim.id, "APPROVE", "Checked by phone", actor=admin)

    assert approved.status == ClaimStatus.APPROVED
    assert approved.admin_notes == "Checked by phone"
    assert _naive(approved.approved_at) == _naive(clock.now)
    assert approved.verified_at is None
    assert approved.verification_code is None
    assert db.session.get(Business, business.id).owner_id == user.id
    assert email_notifier.notices == [(business.email, business.name)]
    log = AuditLog.query.filter_by(action="claim.approve").one()
    assert log.action == "claim.approve"
    assert log.actor_user_id == admin.id
    assert log.entity_id == claim.id
    assert log.details == {"from": "PENDING", "to": "APPROVED", "admin_notes": "Checked by phone"}


def test_admin_reject_clears_code_and_approval(claims, business, user, admin):
    claim = _start_email(claims, business, user)

    rejected = claims.admin_action(claim.id, "REJECT", "Documents missing", actor=admin)

    assert rejected.status == ClaimStatus.REJECTED
    assert rejected.approved_at is None
    assert rejected.verification_code is None
    assert db.session.get(Business, business.id).owner_id is None


def test_admin_can_override_an_expired_claim(claims, business, user, admin, clock):
    claim = _start_email(claims, business, user)
    clock.advance(days=1)
    with pytest.raises(BadRequest):
        claims.verify_claim(claim.id, claim.verification_code, user.id)

    approved = claims.admin_action(claim.id, "APPROVE", None, actor=admin)
    assert approved.status == ClaimStatus.APPROVED


def test_admin_approve_conflicts_when_owned_by_another(claims, business, make_user, admin):
    winner, loser = make_user(), make_user()
    claim_w = _start_email(claims, business, winner)
    claim_l = _start_email(claims, business, loser)
    claims.verify_claim(claim_w.id, claim_w.verification_code, winner.id)

    with pytest.raises(Conflict):
        claims.admin_action(claim_l.id, "APPROVE", None, actor=admin)
    assert AuditLog.query.filter_by(action="claim.approve").count() == 0


def test_admin_action_requires_admin(claims, business, user):
    claim = _start_email(claims, business, user)
    with pytest.raises(Forbidden):
        claims.admin_action(claim.id, "APPROVE", None, actor=user)
    with pytest.raises(Forbidden):
        claims.admin_action(claim.id, "APPROVE", None, actor=None)


def test_admin_action_unknown_claim(claims, admin):
    with pytest.raises(NotFound):
        claims.admin_action(404, "REJECT", None, actor=admin)


def test_admin_action_unknown_action(claims, business, user, admin):
    claim = _start_email(claims, business, user)
    with pytest.raises(BadRequest):
        claims.admin_action(claim.id, "ESCALATE", None, actor=admin)


# Queries


def test_get_claim_hides_other_users_claims(claims, business, user, make_user, admin):
    claim = _start_email(claims, business, user)
    other = make_user()

    assert claims.get_claim(claim.id, user_id=user.id).id == claim.id
    assert claims.get_claim(claim.id, user_id=admin.id, actor=admin).id == claim.id
    with pytest.raises(NotFound):
        claims.get_claim(claim.id, user_id=other.id, actor=other)


def test_get_user_claims_newest_first(claims, make_business, user):
    first = make_business(name="Hotel Caribe")
    second = make_business(name="Casa Pestagua")
    a = _start_email(claims, first, user)
    b = _start_email(claims, second, user)

    listed = claims.get_user_claims(user.id)

    assert [c.id for c in listed] == [b.id, a.id]
    assert listed[0].business.name == "Casa Pestagua"


def test_get_user_businesses_includes_promos_and_validation_stats(claims, business, user):
    claim = _start_email(claims, business, user)
    claims.verify_claim(claim.id, claim.verification_code, user.id)
    db.session.add_all(
        [
            PromoCode(business_id=business.id, code="CARIBE10", discount="10%"),
            PromoCode(business_id=business.id, code="OLD5", discount="5%", active=False),
            Validation(business_id=business.id, is_correct=True),
            Validation(business_id=business.id, is_correct=True),
            Validation(business_id=business.id, is_correct=False),
        ]
    )
    db.session.commit()

    owned = claims.get_user_businesses(user.id)

    assert len(owned) == 1
    assert owned[0].business.id == business.id
    assert [p.code for p in owned[0].promo_codes] == ["CARIBE10"]
    assert owned[0].validation_stats == {"total": 3, "positive": 2, "negative": 1}


def test_generate_code_is_numeric_with_requested_length():
    codes = {generate_code(6) for _ in range(50)}
    assert all(len(c) == 6 and c.isdigit() for c in codes)
    assert len(codes) > 1
    assert len(generate_code(8)) == 8


# Audit trail


def _audit_trail(claim_id):
    rows = AuditLog.query.filter_by(entity_type="business_claim", entity_id=claim_id).order_by(AuditLog.id).all()
    return [(r.action, r.actor_user_id, r.details["from"], r.details["to"], r.ip_address) for r in rows]


def test_every_claimant_transition_is_audited(claims, business, user):
    claim = _start_email(claims, business, user, ip_address="203.0.113.9")
    claim = claims.resend_code(business.id, user.id, "EMAIL", business.email, ip_address="203.0.113.9")
    claims.verify_claim(claim.id, claim.verification_code, user.id, ip_address="203.0.113.10")

    assert _audit_trail(claim.id) == [
        ("claim.start", user.id, None, "PENDING", "203.0.113.9"),
        ("claim.resend", user.id, "PENDING", "PENDING", "203.0.113.9"),
        ("claim.code_accepted", user.id, "PENDING", "APPROVED", "203.0.113.10"),
    ]


def test_expiry_is_audited(claims, business, user, clock):
    claim = _start_email(claims, business, user)
    clock.advance(hours=2)

    with pytest.raises(BadRequest):
        claims.verify_claim(claim.id, claim.verification_code, user.id)

    assert _audit_trail(claim.id)[-1] == ("claim.code_expired", user.id, "PENDING", "EXPIRED", None)


def test_failed_transitions_leave_no_audit_row(claims, business, user, email_notifier):
    email_notifier.fail = True
    with pytest.raises(BadRequest):
        _start_email(claims, business, user)

    email_notifier.fail = False
    claim = _start_email(claims, business, user)
    with pytest.raises(BadRequest):
        claims.verify_claim(claim.id, "000000" if claim.verification_code != "000000" else "111111", user.id)

    assert [row[0] for row in _audit_trail(claim.id)] == ["claim.start"]
    assert AuditLog.query.count() == 1
