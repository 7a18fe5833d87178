"""
Shared test fixtures.

Settings are read at import time, so the environment is prepared before
anything from streaksync is imported.
"""

import os
import re
import tempfile
import time
from datetime import datetime

_TMP_DIR = tempfile.mkdtemp(prefix="streaksync-tests-")

os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP_DIR}/app.db")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-at-least-32-characters")
os.environ.setdefault("STRAVA_CLIENT_ID", "12345")
os.environ.setdefault("STRAVA_CLIENT_SECRET", "client-secret")
os.environ.setdefault("STRAVA_WEBHOOK_VERIFY_TOKEN", "verify-me")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from streaksync.models import Base, register_models
from streaksync.features.users import User
from streaksync.features.strava import (
    AthleteLink,
    BudgetTracker,
    StravaClient,
    StravaOAuth,
    TokenCipher,
    TokenVault,
)
from streaksync.features.strava.sync import StravaSyncService, SyncConfig

register_models()

TEST_KEY = os.environ["TOKEN_ENCRYPTION_KEY"]


# =============================================================================
# Fake Strava
# =============================================================================

def make_activity(
    activity_id: int,
    start: datetime,
    distance: float = 5000.0,
    moving_time: int = 1500,
    sport_type: str = "Run",
    **extra,
) -> dict:
    """Summary activity payload the way Strava returns it."""
    data = {
        "id": activity_id,
        "name": f"Activity {activity_id}",
        "type": sport_type,
        "sport_type": sport_type,
        "start_date": start.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "distance": distance,
        "moving_time": moving_time,
        "elapsed_time": moving_time + 60,
        "total_elevation_gain": 20.0,
        "average_speed": distance / moving_time if moving_time else 0,
        "max_speed": 4.5,
        "kudos_count": 2,
        "achievement_count": 0,
    }
    data.update(extra)
    return data


class FakeStrava:
    """
    In-memory Strava behind an httpx.MockTransport.

    `pages` is served by /athlete/activities (1-based page numbers),
    `details` by /activities/{id} and `athlete` by /athlete. Every
    request is recorded.
    """

    def __init__(self):
        self.pages: list[list[dict]] = []
        self.details: dict[int, dict] = {}
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.deauthorize_calls = 0
        self.usage_header: str | None = None
        self.token_status = 200
        self.list_status = 200
        self.next_expires_at = int(time.time()) + 6 * 3600
        self.athlete: dict = {"id": 555, "firstname": "Ada", "lastname": "Runner", "city": "Almaty", "country": "Kazakhstan"}
        self.athlete_status = 200

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def requests_to(self, path_prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith(path_prefix)]

    def _json(self, payload, status_code: int = 200) -> httpx.Response:
        headers = {}
        if self.usage_header:
            headers["X-ReadRateLimit-Usage"] = self.usage_header
        return httpx.Response(status_code, json=payload, headers=headers)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth/token":
            self.token_calls += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"message": "Bad Request"})
            return httpx.Response(200, json={
                "access_token": f"access-{self.token_calls}",
                "refresh_token": f"refresh-{self.token_calls}",
                "expires_at": self.next_expires_at,
                "athlete": {"id": 555, "firstname": "Ada", "lastname": "Runner"},
            })

        if path == "/oauth/deauthorize":
            self.deauthorize_calls += 1
            return httpx.Response(200, json={})

        if path == "/api/v3/athlete":
            if self.athlete_status != 200:
                return self._json({"message": "error"}, status_code=self.athlete_status)
            return self._json(self.athlete)

        if path == "/api/v3/athlete/activities":
            if self.list_status != 200:
                return httpx.Response(self.list_status, text="Server Error")
            page = int(request.url.params.get("page", 1))
            batch = self.pages[page - 1] if page <= len(self.pages) else []
            return self._json(batch)

        match = re.fullmatch(r"/api/v3/activities/(\d+)", path)
        if match:
            activity_id = int(match.group(1))
            if activity_id not in self.details:
                return self._json({"message": "Record Not Found"}, status_code=404)
            return self._json(self.details[activity_id])

        return httpx.Response(404, json={"message": "unexpected"})


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def no_detail_delay(monkeypatch):
    monkeypatch.setattr(SyncConfig, "DETAIL_FETCH_DELAY_SECONDS", 0)


@pytest_asyncio.fixture
async def db_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_factory):
    async with db_factory() as session:
        yield session


@pytest.fixture
def budget():
    return BudgetTracker()


@pytest.fixture
def cipher():
    return TokenCipher(TEST_KEY)


@pytest.fixture
def strava():
    return FakeStrava()


@pytest.fixture
def client(budget, strava):
    return StravaClient(budget=budget, transport=strava.transport)


@pytest.fixture
def oauth(strava):
    return StravaOAuth(transport=strava.transport)


@pytest.fixture
def make_service(client, cipher, oauth, budget):
    def _make(session: AsyncSession) -> StravaSyncService:
        vault = TokenVault(session, cipher=cipher, oauth=oauth, budget=budget)
        return StravaSyncService(session, client=client, vault=vault)
    return _make


@pytest.fixture
def make_link(cipher):
    async def _make(
        session: AsyncSession,
        user_id: str = "user-1",
        athlete_id: str = "555",
        expires_in: int = 3600,
        role: str = "member",
        **fields,
    ) -> AthleteLink:
        user = await session.get(User, user_id)
        if user is None:
            session.add(User(id=user_id, email=f"{user_id}@example.com", role=role))

        access = cipher.seal("access-0")
        refresh = cipher.seal("refresh-0")
        link = AthleteLink(
            user_id=user_id,
            strava_athlete_id=athlete_id,
            access_token=access.value,
            refresh_token=refresh.value,
            tokens_encrypted=access.encrypted,
            token_expires_at=int(time.time()) + expires_in,
        )
        for key, value in fields.items():
            setattr(link, key, value)
        session.add(link)
        await session.commit()
        return link
    return _make
