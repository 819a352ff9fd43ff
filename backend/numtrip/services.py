from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from flask import Flask, current_app

from .integrations.google_places.client import GooglePlacesClient
from .modules.notifications.bus import EventBus
from .modules.notifications.senders import Notifier, build_email_notifier, build_sms_notifier, subscribe_claim_notices
from .ratelimit import FixedWindowLimiter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Services:
    """Per-app collaborators shared by request handlers and jobs.

    Stored on ``app.extensions["numtrip"]``; attributes may be replaced after
    startup (tests swap in fakes), and consumers read them at call time.
    """

    email_notifier: Notifier
    sms_notifier: Notifier
    events: EventBus
    places: GooglePlacesClient
    limiter: FixedWindowLimiter = field(default_factory=FixedWindowLimiter)
    clock: Callable[[], datetime] = _utcnow


def init_services(app: Flask) -> Services:
    config = app.config
    svc = Services(
        email_notifier=build_email_notifier(config),
        sms_notifier=build_sms_notifier(config),
        events=EventBus(),
        places=GooglePlacesClient(
            config.get("GOOGLE_PLACES_API_KEY"),
            timeout=float(config.get("PLACES_TIMEOUT_SECONDS", 15)),
        ),
    )
    subscribe_claim_notices(svc.events, svc)
    app.extensions["numtrip"] = svc
    return svc


def services() -> Services:
    return current_app.extensions["numtrip"]
