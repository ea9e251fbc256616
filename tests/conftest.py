import os
from datetime import datetime, timedelta
from types import SimpleNamespace

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.pop("NOTIFICATION_WEBHOOK_URL", None)

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from amenity_reservations.database import Base, build_engine  # noqa: E402
from amenity_reservations.domain.reservations.service import SchedulingEngine  # noqa: E402
from amenity_reservations.models import (  # noqa: E402
    Amenity,
    Community,
    CommunityMembership,
    Reservation,
    User,
)
from amenity_reservations.services.notification_service import subscribe, unsubscribe  # noqa: E402
from amenity_reservations.shared.enums import (  # noqa: E402
    MemberRole,
    ModificationStatus,
    ReservationStatus,
)

# Sunday morning; every engine test runs against this wall clock unless it moves it
NOW = datetime(2025, 6, 1, 9, 0)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def party_start(days_ahead: int, hour: int = 14, base: datetime = NOW) -> datetime:
    day = base.date() + timedelta(days=days_ahead)
    return datetime(day.year, day.month, day.day, hour, 0)


class Factory:
    """Insert rows directly, bypassing the engine"""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def community(self, name: str = "Maple Grove HOA") -> Community:
        community = Community(name=name)
        self.db.add(community)
        self.db.commit()
        return community

    def user(self, name: str = "Resident") -> User:
        n = self._next()
        user = User(email=f"user{n}@example.com", full_name=f"{name} {n}")
        self.db.add(user)
        self.db.commit()
        return user

    def member(self, community: Community, role: MemberRole, is_active: bool = True) -> User:
        user = self.user(role.value.capitalize())
        self.db.add(
            CommunityMembership(community_id=community.id, user_id=user.id, role=role, is_active=is_active)
        )
        self.db.commit()
        return user

    def amenity(self, community: Community, **overrides) -> Amenity:
        values = {
            "name": f"Clubhouse {self._next()}",
            "capacity": 50,
            "reservation_fee": 100.0,
            "deposit": 200.0,
            "janitorial_required": True,
            "approval_required": True,
            "cancellation_fee_enabled": True,
            "modification_fee_enabled": True,
            "is_active": True,
        }
        values.update(overrides)
        amenity = Amenity(community_id=community.id, **values)
        self.db.add(amenity)
        self.db.commit()
        return amenity

    def reservation(
        self,
        amenity: Amenity,
        user: User,
        start: datetime,
        end: datetime,
        setup_start: datetime = None,
        cleaning: tuple = None,
        status: ReservationStatus = ReservationStatus.NEW,
        **extra,
    ) -> Reservation:
        setup_start = setup_start or start - timedelta(hours=1)
        reservation = Reservation(
            user_id=user.id,
            amenity_id=amenity.id,
            community_id=amenity.community_id,
            date=start.date(),
            setup_time_start=setup_start,
            setup_time_end=start,
            party_time_start=start,
            party_time_end=end,
            cleaning_time_start=cleaning[0] if cleaning else None,
            cleaning_time_end=cleaning[1] if cleaning else None,
            guest_count=20,
            is_private=False,
            status=status,
            version=1,
            total_fee=amenity.reservation_fee,
            total_deposit=amenity.deposit,
            modification_status=ModificationStatus.NONE,
            modification_count=0,
            modification_fees_total=0,
            damage_assessment_pending=False,
            damage_assessed=False,
        )
        for key, value in extra.items():
            setattr(reservation, key, value)
        self.db.add(reservation)
        self.db.commit()
        return reservation


def booking_payload(amenity_id: int, start: datetime, hours: int = 3, setup_hours: int = 1, guests: int = 20) -> dict:
    return {
        "amenityId": amenity_id,
        "date": start.date(),
        "setupTimeStart": start - timedelta(hours=setup_hours),
        "setupTimeEnd": start,
        "partyTimeStart": start,
        "partyTimeEnd": start + timedelta(hours=hours),
        "guestCount": guests,
        "eventName": "Birthday party",
    }


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'reservations.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def engine(db, clock):
    return SchedulingEngine(db, clock=clock)


@pytest.fixture
def events():
    """Every notification emitted during the test, in order"""
    recorded = []

    def recorder(event_type, payload):
        recorded.append(SimpleNamespace(type=event_type, payload=payload))

    subscribe(recorder)
    yield recorded
    unsubscribe(recorder)


@pytest.fixture
def world(factory):
    """One community with an amenity needing both approvals and one member per role"""
    community = factory.community()
    return SimpleNamespace(
        community=community,
        amenity=factory.amenity(community),
        resident=factory.member(community, MemberRole.RESIDENT),
        other_resident=factory.member(community, MemberRole.RESIDENT),
        janitor=factory.member(community, MemberRole.JANITORIAL),
        admin=factory.member(community, MemberRole.ADMIN),
    )
