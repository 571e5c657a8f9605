"""Shared fixtures and helpers."""

import random
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, enable_sqlite_foreign_keys
from models import Club, Member
from core.club_manager import ClubManager
from core.events import InMemoryEventSink
from core.round_manager import RecommendationDraft, RoundManager
from services.ballot_service import BallotEntry


class PickFirst:
    """Deterministic stand-in for random.Random"""

    def choice(self, seq):
        return seq[0]


class PickLast:
    def choice(self, seq):
        return seq[-1]


def add_members(db, club: Club, names) -> list[Member]:
    """Insert members with strictly increasing join times (turn order = `names` order)."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    members = [
        Member(club_id=club.id, name=name, created_at=base + timedelta(minutes=i))
        for i, name in enumerate(names)
    ]
    db.add_all(members)
    db.commit()
    return members


def make_club(db, clubs: ClubManager, names=("Alice", "Bob", "Carol"), **config):
    """Create a club (default config overridden by `config`) with members.

    Returns:
        (club, [members in turn order])
    """
    club = clubs.create_club(db, "Book Club", config=config or None)
    return club, add_members(db, club, names)


def open_voting(db, rounds: RoundManager, club, recommender, titles=("Dune", "Emma")):
    """Start a round, add recommendations and move it to VOTING.

    Returns:
        (round, [recommendations in creation order])
    """
    round_obj = rounds.start_round(db, club.id, recommender.id)
    recs = rounds.add_recommendations(
        db, round_obj.id, [RecommendationDraft(title=t) for t in titles]
    )
    rounds.start_voting(db, round_obj.id)
    return round_obj, recs


def ballot(*pairs) -> list[BallotEntry]:
    """ballot((rec, 3), (rec2, 2)) -> [BallotEntry, ...]"""
    return [BallotEntry(recommendation_id=rec.id, points=points) for rec, points in pairs]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sink():
    return InMemoryEventSink()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def clubs(sink):
    return ClubManager(sink=sink)


@pytest.fixture
def rounds(sink, rng):
    return RoundManager(sink=sink, rng=rng)
