# tests/conftest.py
import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from config import AuctionSettings
from endpoints.auction.auctionLocks import control_serializer
from endpoints.auction.auctionModel import AuctionModel
from endpoints.auction.auctionQueryModel import AuctionQueryModel
from endpoints.auction.roundModel import RoundModel
from migrations.runner import run_migrations
from utils.dbEngine import make_engine

LEAGUE_ID = "league-1"
FRANCHISE_A = "franchise-a"
FRANCHISE_B = "franchise-b"
START_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def seed_league(engine, league_id=LEAGUE_ID, roster_size=25, franchises=((FRANCHISE_A, "Alpha"), (FRANCHISE_B, "Bravo"))):
    with engine.begin() as conn:
        conn.execute(
            text('INSERT INTO "League" (id, name, "rosterSize") VALUES (:id, :name, :rosterSize)'),
            {"id": league_id, "name": "Test League", "rosterSize": roster_size},
        )
        for franchise_id, name in franchises:
            conn.execute(
                text('INSERT INTO "Franchise" (id, "leagueId", name, purse) VALUES (:id, :leagueId, :name, 0)'),
                {"id": franchise_id, "leagueId": league_id, "name": name},
            )


def make_players(count, base_price=2_000_000, prefix="P"):
    return [
        {"playerId": f"{prefix}{i}", "name": f"Player {prefix}{i}", "team": "XI", "category": "Batter", "basePrice": base_price}
        for i in range(1, count + 1)
    ]


def fetch_one(engine, sql, **params):
    with engine.connect() as conn:
        row = conn.execute(text(sql), params).fetchone()
    return dict(row._mapping) if row else None


def fetch_all(engine, sql, **params):
    with engine.connect() as conn:
        return [dict(r._mapping) for r in conn.execute(text(sql), params)]


@pytest.fixture
def settings():
    return AuctionSettings(
        default_purse=5_000_000,
        default_base_price=2_000_000,
        default_roster_size=25,
        initial_timer_ms=15_000,
        bid_timer_ms=10_000,
        bid_lock_timeout_ms=5_000,
        control_lock_timeout_ms=5_000,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    eng = make_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    run_migrations(eng)
    seed_league(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def file_engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'auction.db'}")
    run_migrations(eng)
    seed_league(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def control_lock(settings):
    return control_serializer(settings)


@pytest.fixture
def model(engine, settings, clock, control_lock):
    return AuctionModel(engine, settings=settings, clock=clock, control_lock=control_lock)


@pytest.fixture
def rounds(engine, settings, control_lock):
    return RoundModel(engine, settings=settings, control_lock=control_lock)


@pytest.fixture
def queries(engine, settings, clock):
    return AuctionQueryModel(engine, settings=settings, clock=clock)


@pytest.fixture
def running_round(model, rounds):
    """League set up with 5M purses, round 1 selected with three 2M players, first one up."""
    model.setup(LEAGUE_ID, 5_000_000)
    created = rounds.create_round(LEAGUE_ID, 1, "Marquee", make_players(3))
    model.select_round(LEAGUE_ID, created["roundId"])
    model.start(LEAGUE_ID)
    return created["roundId"]
