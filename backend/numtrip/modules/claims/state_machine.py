"""Business claim lifecycle as an explicit transition table.

A claim row moves from "no row" (``None``) or a terminal state to PENDING when
a code is issued, and from PENDING to one of the terminal states. The two
approval paths, a claimant submitting the right code and an administrator
overriding, are separate edges into APPROVED that share the same effects.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from ...models.enums import ClaimStatus


class ClaimEvent(str, enum.Enum):
    START = "START"
    RESEND = "RESEND"
    CODE_ACCEPTED = "CODE_ACCEPTED"
    CODE_EXPIRED = "CODE_EXPIRED"
    ADMIN_APPROVE = "ADMIN_APPROVE"
    ADMIN_REJECT = "ADMIN_REJECT"


class Effect(str, enum.Enum):
    ISSUE_CODE = "ISSUE_CODE"
    DISPATCH_CODE = "DISPATCH_CODE"
    CLEAR_CODE = "CLEAR_CODE"
    MARK_VERIFIED = "MARK_VERIFIED"
    GRANT_OWNERSHIP = "GRANT_OWNERSHIP"
    NOTIFY_APPROVED = "NOTIFY_APPROVED"


@dataclass(frozen=True)
class Transition:
    source: Optional[ClaimStatus]
    event: ClaimEvent
    target: ClaimStatus
    effects: FrozenSet[Effect]

    def has(self, effect: Effect) -> bool:
        return effect in self.effects


class InvalidTransition(Exception):
    def __init__(self, state: Optional[ClaimStatus], event: ClaimEvent):
        super().__init__(f"No transition from {state.value if state else 'NEW'} on {event.value}")
        self.state = state
        self.event = event


_ISSUE = frozenset({Effect.ISSUE_CODE, Effect.DISPATCH_CODE})
_APPROVE_BY_CODE = frozenset({Effect.CLEAR_CODE, Effect.MARK_VERIFIED, Effect.GRANT_OWNERSHIP, Effect.NOTIFY_APPROVED})
_APPROVE_BY_ADMIN = frozenset({Effect.CLEAR_CODE, Effect.GRANT_OWNERSHIP, Effect.NOTIFY_APPROVED})
_CLOSE = frozenset({Effect.CLEAR_CODE})


_TABLE: Dict[Tuple[Optional[ClaimStatus], ClaimEvent], Tuple[ClaimStatus, FrozenSet[Effect]]] = {
    # A fresh start is refused while a code is outstanding or after approval
    (None, ClaimEvent.START): (ClaimStatus.PENDING, _ISSUE),
    (ClaimStatus.REJECTED, ClaimEvent.START): (ClaimStatus.PENDING, _ISSUE),
    (ClaimStatus.EXPIRED, ClaimEvent.START): (ClaimStatus.PENDING, _ISSUE),
    # Resend additionally replaces an outstanding code
    (None, ClaimEvent.RESEND): (ClaimStatus.PENDING, _ISSUE),
    (ClaimStatus.PENDING, ClaimEvent.RESEND): (ClaimStatus.PENDING, _ISSUE),
    (ClaimStatus.REJECTED, ClaimEvent.RESEND): (ClaimStatus.PENDING, _ISSUE),
    (ClaimStatus.EXPIRED, ClaimEvent.RESEND): (ClaimStatus.PENDING, _ISSUE),
    # Self-serve verification
    (ClaimStatus.PENDING, ClaimEvent.CODE_ACCEPTED): (ClaimStatus.APPROVED, _APPROVE_BY_CODE),
    (ClaimStatus.PENDING, ClaimEvent.CODE_EXPIRED): (ClaimStatus.EXPIRED, _CLOSE),
}
# Administrative override applies to any existing claim row
for _state in ClaimStatus:
    _TABLE[(_state, ClaimEvent.ADMIN_APPROVE)] = (ClaimStatus.APPROVED, _APPROVE_BY_ADMIN)
    _TABLE[(_state, ClaimEvent.ADMIN_REJECT)] = (ClaimStatus.REJECTED, _CLOSE)


def transition(state: Optional[ClaimStatus], event: ClaimEvent) -> Transition:
    """Resolve the edge leaving ``state`` on ``event``.

    ``state`` is ``None`` when no claim row exists yet for the (business, user)
    pair. Raises :class:`InvalidTransition` when the pair is not in the table.
    """
    if state is not None and not isinstance(state, ClaimStatus):
        state = ClaimStatus(state)
    try:
        target, effects = _TABLE[(state, event)]
    except KeyError:
        raise InvalidTransition(state, event) from None
    return Transition(source=state, event=event, target=target, effects=effects)


def can_transition(state: Optional[ClaimStatus], event: ClaimEvent) -> bool:
    try:
        transition(state, event)
    except InvalidTransition:
        return False
    return True


def allowed_events(state: Optional[ClaimStatus]) -> list[ClaimEvent]:
    return [event for event in ClaimEvent if can_transition(state, event)]
