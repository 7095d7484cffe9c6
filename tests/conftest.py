import os
import uuid
from datetime import timedelta

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import main
from cashflow.models import CashflowEntry
from database import Base, get_db
from ical.models import IcalFeedToken, IcalSubscription, LockedDate
from rental.models import Property, Reservation
from sharing.models import CalendarShareToken
from subscription.models import Subscription, SubscriptionPlan
from user.models import User

VALID_PUSH_TOKEN = "ExponentPushToken[abc123]"


class FakePushService:
    """Collects messages instead of calling the gateway."""

    def __init__(self):
        self.sent = []

    def send(self, messages):
        self.sent.extend(messages)
        return len(messages)


class FakeResponse:
    def __init__(self, text="", status_code=200, reason="OK"):
        self.text = text
        self.status_code = status_code
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 300


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)

    # pysqlite needs explicit BEGIN for SAVEPOINT to behave
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def client(db):
    main.app.dependency_overrides[get_db] = lambda: db
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def push_service():
    return FakePushService()


@pytest.fixture
def make_user(db):
    def _make_user(**kwargs):
        fields = {
            "email": f"{uuid.uuid4().hex[:8]}@example.com",
            "full_name": "Maria",
            "push_token": VALID_PUSH_TOKEN,
            "subscription_status": "active",
            "property_limit": 5,
        }
        fields.update(kwargs)
        user = User(**fields)
        db.add(user)
        db.commit()
        return user
    return _make_user


@pytest.fixture
def make_subscription(db):
    def _make_subscription(user, current_period_end, status="active", plan=None, **kwargs):
        sub = Subscription(
            user_id=user.id,
            plan_id=plan.id if plan else None,
            status=status,
            current_period_start=current_period_end - timedelta(days=30),
            current_period_end=current_period_end,
            **kwargs
        )
        db.add(sub)
        db.commit()
        return sub
    return _make_subscription


@pytest.fixture
def make_plan(db):
    def _make_plan(calendar_months_limit=12, property_limit=10, name="Premium"):
        plan = SubscriptionPlan(name=name, calendar_months_limit=calendar_months_limit, property_limit=property_limit)
        db.add(plan)
        db.commit()
        return plan
    return _make_plan


@pytest.fixture
def rental_property(db, make_user):
    owner = make_user(subscription_status=None, property_limit=1)
    prop = Property(user_id=owner.id, name="Casa Azul, Baguio", city="Baguio", province="Benguet")
    db.add(prop)
    db.commit()
    return prop


@pytest.fixture
def make_ical_subscription(db, rental_property):
    def _make(feed_url="https://calendar.example.com/airbnb.ics", source_name="airbnb", is_active=True):
        sub = IcalSubscription(
            property_id=rental_property.id,
            user_id=rental_property.user_id,
            feed_url=feed_url,
            source_name=source_name,
            is_active=is_active,
        )
        db.add(sub)
        db.commit()
        return sub
    return _make


@pytest.fixture
def add_manual_lock(db, rental_property):
    def _add(day, reason=None):
        lock = LockedDate(
            property_id=rental_property.id,
            user_id=rental_property.user_id,
            date=day,
            reason=reason,
            source="manual",
        )
        db.add(lock)
        db.commit()
        return lock
    return _add


@pytest.fixture
def add_reservation(db, rental_property):
    def _add(check_in, check_out, status="confirmed"):
        reservation = Reservation(
            property_id=rental_property.id, check_in=check_in, check_out=check_out, status=status
        )
        db.add(reservation)
        db.commit()
        return reservation
    return _add


@pytest.fixture
def make_feed_token(db, rental_property):
    def _make(token="feed-token-1", is_active=True, expires_at=None):
        feed_token = IcalFeedToken(
            token=token,
            property_id=rental_property.id,
            user_id=rental_property.user_id,
            is_active=is_active,
            expires_at=expires_at,
        )
        db.add(feed_token)
        db.commit()
        return feed_token
    return _make


@pytest.fixture
def make_share_token(db, rental_property):
    def _make(token="share-token-1", is_active=True, expires_at=None):
        share_token = CalendarShareToken(
            token=token,
            property_id=rental_property.id,
            user_id=rental_property.user_id,
            is_active=is_active,
            expires_at=expires_at,
        )
        db.add(share_token)
        db.commit()
        return share_token
    return _make


@pytest.fixture
def make_recurring_entry(db, make_user):
    def _make(next_due_date, frequency="monthly", recurrence_end_date=None):
        owner = make_user()
        entry = CashflowEntry(
            user_id=owner.id,
            type="expense",
            category="utilities",
            description="Internet",
            amount=1500,
            currency="PHP",
            transaction_date=next_due_date - timedelta(days=30),
            is_recurring=True,
            recurrence_frequency=frequency,
            next_due_date=next_due_date,
            recurrence_end_date=recurrence_end_date,
        )
        db.add(entry)
        db.commit()
        return entry
    return _make
