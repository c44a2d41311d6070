from sqlalchemy import text

from conftest import FRANCHISE_A, LEAGUE_ID, fetch_one, seed_league, make_players
from worker.auctionTimerWorker import _get_soonest_deadline, _sleep_seconds, process_due_timers


def test_nothing_due_before_deadline_plus_grace(running_round, model, clock):
    clock.advance(15_000 + 500)
    assert process_due_timers(model) == []


def test_resolves_overdue_timer(running_round, model, engine, clock):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    clock.advance(10_000 + 501)

    results = process_due_timers(model)

    assert len(results) == 1
    assert results[0]["leagueId"] == LEAGUE_ID
    assert results[0]["sold"] is True
    purse = fetch_one(engine, 'SELECT purse FROM "Franchise" WHERE id = :f', f=FRANCHISE_A)["purse"]
    assert int(purse) == 3_000_000

    # Block is cleared, so the next pass has nothing to do
    assert process_due_timers(model) == []


def test_full_roster_winner_does_not_stall_the_worker(running_round, model, engine, clock):
    model.bid(LEAGUE_ID, FRANCHISE_A)
    with engine.begin() as conn:
        conn.execute(text('UPDATE "League" SET "rosterSize" = 1 WHERE id = :l'), {"l": LEAGUE_ID})
        conn.execute(
            text("""
                INSERT INTO "RosterEntry" (id, "franchiseId", "playerRef", "acquiredVia")
                VALUES ('r1', :f, 'X', 'trade')
            """),
            {"f": FRANCHISE_A},
        )
    clock.advance(10_000 + 501)

    results = process_due_timers(model)

    assert [(r["leagueId"], r.get("unsold")) for r in results] == [(LEAGUE_ID, True)]
    assert process_due_timers(model) == []


def test_paused_timers_are_left_alone(running_round, model, clock):
    model.pause(LEAGUE_ID)
    clock.advance(60_000)
    assert process_due_timers(model) == []


def test_soonest_deadline_across_leagues(running_round, model, rounds, engine, clock):
    seed_league(engine, league_id="league-2", franchises=(("franchise-z", "Zulu"),))
    clock.advance(1_000)
    model.setup("league-2")
    created = rounds.create_round("league-2", 1, "Marquee", make_players(1))
    model.select_round("league-2", created["roundId"])
    model.start("league-2")

    with engine.connect() as conn:
        league_id, deadline = _get_soonest_deadline(conn, grace_ms=500)

    assert league_id == LEAGUE_ID
    assert deadline == clock.now - 1_000 + 15_000 + 500


def test_sleep_is_bounded():
    assert _sleep_seconds(1_000, 1_000) == 0.5
    assert _sleep_seconds(10_000, 0) == 10.0
    assert _sleep_seconds(10_000_000, 0) == 30
