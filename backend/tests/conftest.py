"""
Pytest configuration and fixtures for the NumTrip backend tests.

Each test gets a fresh in-memory SQLite schema, and the app's outbound
collaborators (notifiers, Places client, clock) are replaced by fakes.
"""
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from numtrip import create_app
from numtrip.extensions import db
from numtrip.models.business import Business
from numtrip.models.user import User
from numtrip.modules.notifications.senders import Notifier
from numtrip.security import issue_token

TEST_SECRET = "test-secret"
START_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeNotifier(Notifier):
    """Records every message; set ``fail`` to make sends report failure."""

    def __init__(self):
        self.codes = []
        self.notices = []
        self.fail = False

    def send_verification_code(self, destination, code, business_name):
        if self.fail:
            return False
        self.codes.append((destination, code, business_name))
        return True

    def send_approval_notice(self, destination, business_name):
        if self.fail:
            return False
        self.notices.append((destination, business_name))
        return True


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakePlacesClient:
    """Serves canned Places responses.

    ``searches`` maps a query to a list of pages; a page's ``next_page_token``
    of ``"<query>#<n>"`` points at page ``n`` of the same query.
    """

    def __init__(self):
        self.configured = True
        self.searches = {}
        self.details = {}
        self.search_calls = []
        self.details_calls = []

    def is_configured(self):
        return self.configured

    def add_place(self, place_id, name, address="Calle 5 #10-20, Cartagena", **extra):
        result = {"place_id": place_id, "name": name, "formatted_address": address, "types": ["lodging"], **extra}
        self.details[place_id] = {"status": "OK", "result": result}
        return {"place_id": place_id, "name": name, "formatted_address": address}

    def text_search(self, query, location=None, radius=None, type=None, pagetoken=None):
        self.search_calls.append({"query": query, "location": location, "radius": radius, "pagetoken": pagetoken})
        pages = self.searches.get(query)
        if not pages:
            return {"status": "ZERO_RESULTS", "results": []}
        index = int(pagetoken.rsplit("#", 1)[1]) if pagetoken else 0
        return pages[index]

    def place_details(self, place_id):
        self.details_calls.append(place_id)
        return self.details.get(place_id, {"status": "NOT_FOUND", "error_message": "Unknown place"})


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["numtrip"]


@pytest.fixture
def email_notifier(services):
    fake = FakeNotifier()
    services.email_notifier = fake
    return fake


@pytest.fixture
def sms_notifier(services):
    fake = FakeNotifier()
    services.sms_notifier = fake
    return fake


@pytest.fixture
def clock(services):
    fake = FakeClock(START_TIME)
    services.clock = fake
    return fake


@pytest.fixture
def places(services):
    fake = FakePlacesClient()
    services.places = fake
    return fake


_seq = count(1)


@pytest.fixture
def make_user(app):
    def _make(role="user", email=None, name=None):
        n = next(_seq)
        user = User(email=email or f"user{n}@example.com", name=name or f"User {n}", role=role)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def make_business(app):
    def _make(name="Hotel Caribe", **fields):
        values = {
            "email": "reservas@hotelcaribe.co",
            "phone": "5756501160",
            "address": "Calle 5 #10-20, Cartagena",
        }
        values.update(fields)
        business = Business(name=name, **values)
        db.session.add(business)
        db.session.commit()
        return business

    return _make


@pytest.fixture
def business(make_business):
    return make_business()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {issue_token(user.id, user.role, TEST_SECRET)}"}

    return _headers
