"""
Tests for TokenVault.
"""

import asyncio
import time

import pytest

from streaksync.features.strava import StravaRateLimitError, TokenVault
from streaksync.features.strava.repository import AthleteLinkRepository


@pytest.fixture
def make_vault(cipher, oauth, budget):
    def _make(session):
        return TokenVault(session, cipher=cipher, oauth=oauth, budget=budget)
    return _make


class TestGetValidToken:
    """Tests for reading and refreshing tokens."""

    @pytest.mark.asyncio
    async def test_fresh_token_is_decrypted_without_refresh(self, db, make_link, make_vault, strava):
        link = await make_link(db, expires_in=3600)

        assert link.tokens_encrypted is True
        assert link.access_token != "access-0"
        assert await make_vault(db).get_valid_token(link) == "access-0"
        assert strava.token_calls == 0

    @pytest.mark.asyncio
    async def test_token_inside_skew_is_refreshed(self, db, make_link, make_vault, strava, budget, cipher):
        link = await make_link(db, expires_in=120)
        old_expiry = link.token_expires_at

        token = await make_vault(db).get_valid_token(link)

        assert token == "access-1"
        assert strava.token_calls == 1
        assert budget.short_count == 1
        assert link.token_expires_at > old_expiry
        # Rotated refresh token is persisted encrypted
        assert link.refresh_token != "refresh-1"
        assert cipher.decrypt(link.refresh_token) == "refresh-1"

    @pytest.mark.asyncio
    async def test_no_tokens_means_reauthorize(self, db, make_link, make_vault):
        link = await make_link(db)
        await make_vault(db).clear_tokens(link)

        assert await make_vault(db).get_valid_token(link) is None

    @pytest.mark.asyncio
    async def test_refresh_rejected_returns_none(self, db, make_link, make_vault, strava):
        link = await make_link(db, expires_in=-10)
        strava.token_status = 400

        assert await make_vault(db).get_valid_token(link) is None

    @pytest.mark.asyncio
    async def test_refresh_needs_budget(self, db, make_link, make_vault, strava, budget):
        link = await make_link(db, expires_in=-10)
        budget.record_calls(280)

        with pytest.raises(StravaRateLimitError):
            await make_vault(db).get_valid_token(link)
        assert strava.token_calls == 0

    @pytest.mark.asyncio
    async def test_expiry_never_moves_backwards(self, db, make_link, make_vault):
        link = await make_link(db)
        later = int(time.time()) + 10_000

        vault = make_vault(db)
        await vault.store_tokens(link, {"access_token": "a", "refresh_token": "r", "expires_at": later})
        await vault.store_tokens(link, {"access_token": "b", "refresh_token": "s", "expires_at": later - 500})

        assert link.token_expires_at == later
        assert vault.read_access_token(link) == "b"


class TestSingleFlightRefresh:
    """Concurrent refreshes for one user issue a single token request."""

    @pytest.mark.asyncio
    async def test_concurrent_refresh_hits_strava_once(self, db_factory, make_link, make_vault, strava):
        async with db_factory() as setup:
            await make_link(setup, expires_in=-10)

        async def get_token():
            async with db_factory() as session:
                link = await AthleteLinkRepository(session).get_by_user_id("user-1")
                return await make_vault(session).get_valid_token(link)

        tokens = await asyncio.gather(get_token(), get_token(), get_token())

        assert strava.token_calls == 1
        assert tokens == ["access-1", "access-1", "access-1"]
