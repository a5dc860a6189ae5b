"""
API route tests. Upstream providers are replaced with httpx.MockTransport;
the lifespan is disabled and the assembler is installed directly.
"""
from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.assembler import build_assembler
from api.dependencies import init_dependencies, reset_dependencies
from ingest.history import to_epoch_ms
from shared.config import Settings, get_settings

API_KEY = "secret123"
NOW = datetime(2026, 10, 18, 23, 30, tzinfo=timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


ODDS = [
    {
        "id": "abc",
        "sport_key": "basketball_nba",
        "commence_time": _iso(NOW + timedelta(minutes=30)),
        "home_team": "Boston Celtics",
        "away_team": "Los Angeles Lakers",
        "bookmakers": [
            {
                "key": "draftkings",
                "title": "DraftKings",
                "last_update": _iso(NOW),
                "markets": [
                    {
                        "key": "totals",
                        "outcomes": [
                            {"name": "Over", "price": -110, "point": 221.5},
                            {"name": "Under", "price": -110, "point": 221.5},
                        ],
                    }
                ],
            }
        ],
    }
]

SCORES = [
    {
        "id": "live1",
        "commence_time": _iso(NOW - timedelta(hours=1)),
        "completed": False,
        "home_team": "Boston Celtics",
        "away_team": "Los Angeles Lakers",
        "scores": [
            {"name": "Boston Celtics", "score": "61"},
            {"name": "Los Angeles Lakers", "score": "57"},
        ],
    },
    {
        "id": "later1",
        "commence_time": _iso(NOW + timedelta(hours=2)),
        "completed": False,
        "home_team": "New York Knicks",
        "away_team": "Miami Heat",
        "scores": None,
    },
]


def _competitor(side: str, display: str, location: str, name: str) -> dict[str, Any]:
    return {
        "homeAway": side,
        "team": {"displayName": display, "location": location, "name": name, "shortDisplayName": name},
    }


SCOREBOARD = {
    "events": [
        {
            "id": "401",
            "competitions": [
                {
                    "competitors": [
                        _competitor("home", "Boston Celtics", "Boston", "Celtics"),
                        _competitor("away", "LA Lakers", "LA", "Lakers"),
                    ],
                    "status": {
                        "period": 3,
                        "displayClock": "4:12",
                        "type": {"name": "STATUS_IN_PROGRESS", "state": "in"},
                    },
                }
            ],
        },
        {
            "id": "402",
            "competitions": [
                {
                    "competitors": [
                        _competitor("home", "New York Knicks", "New York", "Knicks"),
                        _competitor("away", "Miami Heat", "Miami", "Heat"),
                    ],
                    "status": {
                        "period": 1,
                        "displayClock": "11:00",
                        "type": {"name": "STATUS_IN_PROGRESS", "state": "in"},
                    },
                }
            ],
        },
    ]
}


class FakeUpstream:
    """Both providers, with per-endpoint status and call counting."""

    def __init__(self) -> None:
        self.status: dict[str, int] = {"odds": 200, "scores": 200, "scoreboard": 200}
        self.payload: dict[str, Any] = {"odds": ODDS, "scores": SCORES, "scoreboard": SCOREBOARD}
        self.calls: Counter[str] = Counter()
        self.params: list[dict[str, str]] = []

    def _respond(self, endpoint: str) -> httpx.Response:
        self.calls[endpoint] += 1
        status = self.status[endpoint]
        if status != 200:
            return httpx.Response(status, text=f"{endpoint} unavailable for key {API_KEY}")
        return httpx.Response(200, json=self.payload[endpoint])

    def odds_handler(self, request: httpx.Request) -> httpx.Response:
        self.params.append(dict(request.url.params))
        endpoint = "odds" if request.url.path.endswith("/odds") else "scores"
        return self._respond(endpoint)

    def espn_handler(self, request: httpx.Request) -> httpx.Response:
        return self._respond("scoreboard")


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def settings() -> Settings:
    return Settings(odds_api_key=API_KEY, metrics_enabled=False)


@pytest.fixture
def client(upstream: FakeUpstream, settings: Settings) -> Iterator[TestClient]:
    """Test client with lifespan disabled and upstreams mocked."""
    assembler = build_assembler(
        settings,
        odds_transport=httpx.MockTransport(upstream.odds_handler),
        clock_transport=httpx.MockTransport(upstream.espn_handler),
        now=lambda: NOW,
    )
    asyncio.run(assembler.start())
    init_dependencies(assembler)
    app = create_app(use_lifespan=False)
    with TestClient(app) as c:
        yield c
    reset_dependencies()
    asyncio.run(assembler.close())


@pytest.fixture
def fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ── System ──────────────────────────────────────────────────────────────

def test_health_returns_ok(client: TestClient) -> None:
    """GET /health returns 200 and status ok."""
    r = client.get("/health")
    assert r.status_code == 200
    data = r.json()
    assert data.get("status") == "ok"
    assert data.get("service") == "api"


def test_health_returns_json(client: TestClient) -> None:
    """GET /health returns application/json."""
    r = client.get("/health")
    assert r.headers.get("content-type", "").startswith("application/json")


def test_request_id_header(client: TestClient) -> None:
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers.get("x-request-id") == "abc123"


def test_status_reports_throttle_state(client: TestClient) -> None:
    client.get("/api/odds")
    data = client.get("/api/status").json()
    assert data["status"] == "ok"
    assert data["resources"]["odds"]["cached"] is True
    assert data["resources"]["odds"]["window_used"] is True
    assert data["settings"]["window_s"] == 45.0


# ── /api/odds ───────────────────────────────────────────────────────────

def test_odds_returns_totals_rows(client: TestClient, upstream: FakeUpstream) -> None:
    r = client.get("/api/odds?live=true&bookmaker=draftkings")
    assert r.status_code == 200
    rows = r.json()
    assert rows == [
        {
            "id": "abc",
            "sport_key": "basketball_nba",
            "commence_time": ODDS[0]["commence_time"],
            "home_team": "Boston Celtics",
            "away_team": "Los Angeles Lakers",
            "bookmaker": "DraftKings",
            "bookmaker_last_update": _iso(NOW),
            "total_point": 221.5,
        }
    ]
    assert upstream.params[0]["bookmakers"] == "draftkings"
    assert upstream.params[0]["markets"] == "totals"


def test_default_bookmaker(client: TestClient, upstream: FakeUpstream) -> None:
    client.get("/api/odds")
    assert upstream.params[0]["bookmakers"] == "draftkings"


def test_odds_are_cached_within_ttl(client: TestClient, upstream: FakeUpstream) -> None:
    first = client.get("/api/odds").json()
    second = client.get("/api/odds").json()
    assert first == second
    assert upstream.calls["odds"] == 1


def test_bookmaker_change_in_spent_window_returns_previous_rows(
    client: TestClient, upstream: FakeUpstream
) -> None:
    client.get("/api/odds?bookmaker=draftkings")
    r = client.get("/api/odds?bookmaker=fanduel")
    assert r.status_code == 200
    assert r.json()[0]["bookmaker"] == "DraftKings"
    assert upstream.calls["odds"] == 1


def test_odds_upstream_failure_is_422(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.status["odds"] = 401
    r = client.get("/api/odds")
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "Upstream error"
    assert body["status"] == 422
    assert "unavailable" in body["detail"]
    assert API_KEY not in body["detail"]


def test_failed_fetch_spends_window(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.status["odds"] = 500
    assert client.get("/api/odds").status_code == 422
    upstream.status["odds"] = 200
    r = client.get("/api/odds")
    assert r.status_code == 200
    assert r.json() == []
    assert upstream.calls["odds"] == 1


# ── /api/history ────────────────────────────────────────────────────────

def test_history_records_fetched_totals_only(client: TestClient) -> None:
    assert client.get("/api/history").json() == {}
    client.get("/api/odds")
    client.get("/api/odds")
    history = client.get("/api/history").json()
    assert history == {"abc": [{"ts": to_epoch_ms(NOW), "y": 221.5}]}


# ── /api/scores ─────────────────────────────────────────────────────────

def test_scores_merge_clock_from_scoreboard(client: TestClient, upstream: FakeUpstream) -> None:
    r = client.get("/api/scores")
    assert r.status_code == 200
    games = {g["id"]: g for g in r.json()}

    live = games["live1"]
    assert (live["away_score"], live["home_score"]) == (57, 61)
    assert (live["period"], live["clock"]) == (3, "4:12")
    assert live["completed"] is False

    later = games["later1"]
    assert later["home_score"] is None and later["away_score"] is None
    assert later["period"] is None and later["clock"] is None

    assert upstream.calls["scores"] == 1
    assert upstream.calls["scoreboard"] == 1


def test_scores_are_cached(client: TestClient, upstream: FakeUpstream) -> None:
    client.get("/api/scores")
    client.get("/api/scores")
    assert upstream.calls["scores"] == 1


def test_scoreboard_failure_degrades_to_no_clock(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.status["scoreboard"] = 503
    r = client.get("/api/scores")
    assert r.status_code == 200
    live = next(g for g in r.json() if g["id"] == "live1")
    assert live["home_score"] == 61
    assert live["period"] is None and live["clock"] is None


def test_malformed_scoreboard_degrades_to_no_clock(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.payload["scoreboard"] = ["not", "a", "scoreboard"]
    r = client.get("/api/scores")
    assert r.status_code == 200
    assert all(g["period"] is None for g in r.json())


@pytest.mark.parametrize(
    "event",
    [
        {"id": "bad1", "competitions": {"x": 1}},
        {
            "id": "bad2",
            "competitions": [
                {
                    "competitors": [
                        {"homeAway": "home", "team": "Lakers"},
                        {"homeAway": "away", "team": "Celtics"},
                    ]
                }
            ],
        },
        {"id": "bad3", "competitions": [{"competitors": "none"}]},
    ],
)
def test_malformed_scoreboard_event_is_skipped(
    client: TestClient, upstream: FakeUpstream, event: dict[str, Any]
) -> None:
    upstream.payload["scoreboard"] = {"events": [event, SCOREBOARD["events"][0]]}
    r = client.get("/api/scores")
    assert r.status_code == 200
    live = next(g for g in r.json() if g["id"] == "live1")
    assert (live["period"], live["clock"]) == (3, "4:12")


def test_non_string_team_names_do_not_fail_scores(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.payload["scores"] = [
        {**SCORES[0], "home_team": 123, "away_team": {"name": "Los Angeles Lakers"}},
        SCORES[1],
    ]
    r = client.get("/api/scores")
    assert r.status_code == 200
    live = next(g for g in r.json() if g["id"] == "live1")
    assert live["home_team"] == "123"
    assert live["away_team"] is None


def test_non_string_odds_fields_do_not_fail_odds(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.payload["odds"] = [{**ODDS[0], "commence_time": 1760000000, "away_team": None, "sport_key": ["nba"]}]
    r = client.get("/api/odds")
    assert r.status_code == 200
    row = r.json()[0]
    assert row["commence_time"] == "1760000000"
    assert row["away_team"] is None
    assert row["sport_key"] is None
    assert row["total_point"] == 221.5


def test_scores_upstream_failure_is_422(client: TestClient, upstream: FakeUpstream) -> None:
    upstream.status["scores"] = 500
    r = client.get("/api/scores")
    assert r.status_code == 422
    assert r.json()["error"] == "Upstream error"


# ── Errors and debug ────────────────────────────────────────────────────

class ExplodingAssembler:
    async def get_odds(self, live: bool, bookmaker: str | None) -> list[Any]:
        raise RuntimeError(f"unexpected failure with key {API_KEY} " + "x" * 500)


def test_internal_error_is_500_with_redacted_detail(
    fresh_settings: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("LW_ODDS_API_KEY", API_KEY)
    init_dependencies(ExplodingAssembler())  # type: ignore[arg-type]
    app = create_app(use_lifespan=False)
    try:
        with TestClient(app, raise_server_exceptions=False) as c:
            r = c.get("/api/odds")
    finally:
        reset_dependencies()
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == "Server error"
    assert API_KEY not in body["detail"]
    assert len(body["detail"]) <= 200


def test_scores_debug_hidden_by_default(client: TestClient) -> None:
    assert client.get("/api/scores_debug").status_code == 404


def test_scores_debug_samples_last_payload(
    fresh_settings: None,
    monkeypatch: pytest.MonkeyPatch,
    upstream: FakeUpstream,
    settings: Settings,
) -> None:
    monkeypatch.setenv("LW_DEBUG", "true")
    assembler = build_assembler(
        settings,
        odds_transport=httpx.MockTransport(upstream.odds_handler),
        clock_transport=httpx.MockTransport(upstream.espn_handler),
        now=lambda: NOW,
    )
    asyncio.run(assembler.start())
    init_dependencies(assembler)
    try:
        with TestClient(create_app(use_lifespan=False)) as c:
            assert c.get("/api/scores_debug").json()["ok"] is False
            c.get("/api/scores")
            data = c.get("/api/scores_debug").json()
    finally:
        reset_dependencies()
        asyncio.run(assembler.close())

    assert data["ok"] is True
    assert data["count"] == 2
    assert [g["id"] for g in data["sample"]] == ["live1", "later1"]
    assert upstream.calls["scores"] == 1
