"""
Pytest configuration and shared fixtures.
"""
import asyncio
from datetime import date, datetime, timedelta
from typing import Dict, List, Any
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from core.duckdb_store import DuckDBStore
from core.models import AdSpend, Channel
from core.periods import resolve_period

TOKYO = ZoneInfo("Asia/Tokyo")

# Fixed reference instant for relative periods
NOW = datetime(2026, 1, 13, 15, 0, tzinfo=TOKYO)

SCENARIO_CHANNEL = "ch-c"
EMPTY_CHANNEL = "ch-empty"
INACTIVE_CHANNEL = "ch-old"

SCENARIO_START = date(2026, 1, 1)
SCENARIO_END = date(2026, 1, 9)


def scenario_sessions() -> List[Dict[str, Any]]:
    """
    The 35 real completions of the scenario channel.

    Genders: 20 female, 10 male, 5 unknown. Ages cycle 20/30/40/50/60.
    Categories: first 20 "good", rest "caution". Places: 15 in a town of
    Shibuya, 10 at Shinjuku city level, 10 without a place.
    """
    sessions = []
    for i in range(35):
        if i < 20:
            gender = "female"
        elif i < 30:
            gender = "male"
        else:
            gender = None

        if i < 15:
            place = {"region": "東京都", "city": "渋谷区", "town": "神南", "latitude": 35.6641, "longitude": 139.6982}
        elif i < 25:
            place = {"region": "東京都", "city": "新宿区", "town": None, "latitude": 35.6938, "longitude": 139.7034}
        else:
            place = {"region": None, "city": None, "town": None, "latitude": None, "longitude": None}

        sessions.append({
            "session_id": f"s{i:02d}",
            "created_at": datetime(2026, 1, 1 + i % 9, 11, i, tzinfo=TOKYO),
            "user_gender": gender,
            "user_age": 20 + (i % 5) * 10,
            "result_category": "good" if i < 20 else "caution",
            "total_score": 80 if i < 20 else 40,
            **place,
        })
    return sessions


async def seed_scenario(store: DuckDBStore) -> None:
    """
    Seed one channel with a known window of events.

    Window: 2026-01-01 .. 2026-01-09 (Asia/Tokyo), 9000 budget over 9 days.
    - 90 QR access events (10 per day) plus 10 page views
    - 35 completions plus 5 demo sessions and 1 abandoned session
    - 30 CTA clicks: 20 booking (good sessions), 10 line (caution sessions)
    - Previous window: 45 access events on 2025-12-25
    - Outside both windows: 3 access events on 2026-01-10
    """
    await store.add_channel(Channel(
        id=SCENARIO_CHANNEL,
        name="Station poster",
        ad_spend=AdSpend(
            budget=9000,
            start_date=SCENARIO_START,
            end_date=SCENARIO_END,
            placement="Shibuya station",
        ),
        latitude=35.658,
        longitude=139.7016,
    ))
    await store.add_channel(Channel(id=EMPTY_CHANNEL, name="Flyer"))
    await store.add_channel(Channel(id=INACTIVE_CHANNEL, name="Old banner", is_active=False))

    for i in range(90):
        await store.insert_access_event(
            SCENARIO_CHANNEL, datetime(2026, 1, 1 + i % 9, 10, i % 60, tzinfo=TOKYO)
        )
    for i in range(10):
        await store.insert_access_event(
            SCENARIO_CHANNEL,
            datetime(2026, 1, 2, 12, i, tzinfo=TOKYO),
            event_type="clinic_page_view",
        )
    for i in range(45):
        await store.insert_access_event(
            SCENARIO_CHANNEL, datetime(2025, 12, 25, 12, i, tzinfo=TOKYO)
        )
    for i in range(3):
        await store.insert_access_event(
            SCENARIO_CHANNEL, datetime(2026, 1, 10, 9, i, tzinfo=TOKYO)
        )

    sessions = scenario_sessions()
    for s in sessions:
        await store.insert_completion(
            SCENARIO_CHANNEL,
            created_at=s["created_at"],
            completed_at=s["created_at"] + timedelta(minutes=3),
            total_score=s["total_score"],
            result_category=s["result_category"],
            user_age=s["user_age"],
            user_gender=s["user_gender"],
            latitude=s["latitude"],
            longitude=s["longitude"],
            region=s["region"],
            city=s["city"],
            town=s["town"],
            session_id=s["session_id"],
        )
    for i in range(5):
        created = datetime(2026, 1, 3, 14, i, tzinfo=TOKYO)
        await store.insert_completion(
            SCENARIO_CHANNEL,
            created_at=created,
            completed_at=created + timedelta(minutes=2),
            is_demo=True,
            result_category="good",
            user_gender="female",
            user_age=30,
            region="東京都",
            city="渋谷区",
            town="神南",
        )
    await store.insert_completion(
        SCENARIO_CHANNEL,
        created_at=datetime(2026, 1, 4, 9, 0, tzinfo=TOKYO),
        user_gender="male",
        user_age=45,
    )

    for i in range(30):
        session = sessions[i]
        await store.insert_cta_click(
            SCENARIO_CHANNEL,
            "booking" if i < 20 else "line",
            session["created_at"] + timedelta(minutes=5),
            session_id=session["session_id"],
        )


@pytest.fixture
def scenario_period():
    """Custom period covering the seeded scenario window."""
    return resolve_period("custom", SCENARIO_START, SCENARIO_END, tz=TOKYO)


@pytest_asyncio.fixture
async def store():
    """Empty in-memory event store."""
    s = DuckDBStore(":memory:")
    await s.connect()
    yield s
    await s.close()


@pytest_asyncio.fixture
async def seeded_store(store):
    """In-memory store holding the scenario."""
    await seed_scenario(store)
    return store


@pytest.fixture
def api_client(monkeypatch):
    """
    TestClient over a seeded in-memory store.

    Installs the store as the process singleton, disables rate limiting
    and forgets cached singletons around the test.
    """
    from fastapi.testclient import TestClient

    import core.duckdb_store as duckdb_store
    from core.attribution_service import reset_attribution_service
    from web.main import app
    from web.routes.api._deps import limiter
    from web.routes.api.health import reset_stats_cache

    s = DuckDBStore(":memory:")
    asyncio.run(seed_scenario(s))

    monkeypatch.setattr(duckdb_store, "_store_instance", s)
    monkeypatch.setattr(limiter, "enabled", False)
    reset_attribution_service()
    reset_stats_cache()

    with TestClient(app) as client:
        yield client

    reset_attribution_service()
    reset_stats_cache()
