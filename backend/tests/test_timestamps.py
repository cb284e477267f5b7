"""
ytclipper Backend — Timestamp Notes Tests
===========================================

What we test:
    ✅ Create persists the note for the signed-in user
    ✅ List returns the user's live notes for one video
    ✅ Delete: owner soft-deletes, other users get 403, unknown ids 404
    ✅ Database failures surface as DatabaseError
    ✅ Routes require a session
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from ytclipper.exceptions import DatabaseError, ForbiddenError, NotFoundError
from ytclipper.models.timestamp import Timestamp
from ytclipper.schemas.timestamp import CreateTimestampRequest
from ytclipper.services.timestamp_service import TimestampService

from conftest import make_account


def make_timestamp(user_id, **overrides) -> Timestamp:
    now = datetime.now(timezone.utc)
    fields = {
        "id": uuid.uuid4(),
        "video_id": "dQw4w9WgXcQ",
        "user_id": user_id,
        "timestamp": 42.5,
        "title": "Chorus",
        "note": "",
        "tags": ["music"],
        "created_at": now,
        "updated_at": now,
        "deleted_at": None,
    }
    fields.update(overrides)
    return Timestamp(**fields)


def _returning_one(session, value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    session.execute.return_value = result


class TestCreateTimestamp:

    def setup_method(self):
        self.service = TimestampService()

    @pytest.mark.asyncio
    async def test_create(self, mock_db_session):
        user_id = uuid.uuid4()

        def assign_id():
            mock_db_session.add.call_args[0][0].id = uuid.uuid4()

        mock_db_session.flush = AsyncMock(side_effect=assign_id)
        request = CreateTimestampRequest(
            video_id="dQw4w9WgXcQ", timestamp=12.0, title="Intro", tags=[" a ", "a", "", "b"]
        )

        result = await self.service.create_timestamp(mock_db_session, user_id, request)

        assert result.timestamp.user_id == user_id
        assert result.timestamp.tags == ["a", "b"]
        mock_db_session.add.assert_called_once()

    @pytest.mark.asyncio
    async def test_create_db_failure(self, mock_db_session):
        mock_db_session.flush = AsyncMock(
            side_effect=OperationalError("INSERT", {}, Exception("down"))
        )
        with pytest.raises(DatabaseError):
            await self.service.create_timestamp(
                mock_db_session,
                uuid.uuid4(),
                CreateTimestampRequest(video_id="v", timestamp=1.0),
            )


class TestListTimestamps:

    @pytest.mark.asyncio
    async def test_list(self, mock_db_session):
        user_id = uuid.uuid4()
        rows = [make_timestamp(user_id, timestamp=5.0), make_timestamp(user_id, timestamp=9.0)]
        result = MagicMock()
        result.scalars.return_value.all.return_value = rows
        mock_db_session.execute.return_value = result

        listed = await TimestampService().list_timestamps(mock_db_session, user_id, "dQw4w9WgXcQ")

        assert [t.timestamp for t in listed.timestamps] == [5.0, 9.0]
        assert listed.video_id == "dQw4w9WgXcQ"


class TestDeleteTimestamp:

    def setup_method(self):
        self.service = TimestampService()

    @pytest.mark.asyncio
    async def test_owner_soft_deletes(self, mock_db_session):
        user_id = uuid.uuid4()
        row = make_timestamp(user_id)
        _returning_one(mock_db_session, row)

        result = await self.service.delete_timestamp(mock_db_session, user_id, row.id)

        assert result.timestamp_id == row.id
        assert row.deleted_at is not None
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self, mock_db_session):
        row = make_timestamp(uuid.uuid4())
        _returning_one(mock_db_session, row)

        with pytest.raises(ForbiddenError):
            await self.service.delete_timestamp(mock_db_session, uuid.uuid4(), row.id)
        assert row.deleted_at is None

    @pytest.mark.asyncio
    async def test_unknown_not_found(self, mock_db_session):
        _returning_one(mock_db_session, None)

        with pytest.raises(NotFoundError) as exc_info:
            await self.service.delete_timestamp(mock_db_session, uuid.uuid4(), uuid.uuid4())
        assert exc_info.value.code == "NOT_FOUND"


class TestTimestampRoutes:

    @pytest.mark.asyncio
    async def test_requires_session(self, test_client):
        response = await test_client.post(
            "/api/v1/timestamps", json={"video_id": "v", "timestamp": 1.0}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_list_and_delete(self, test_client, fake_store, token_issuer, mock_db_session):
        account = await fake_store.insert(make_account())
        headers = {"Authorization": f"Bearer {token_issuer.issue_pair(account.id).access_token}"}

        listing = MagicMock()
        listing.scalars.return_value.all.return_value = [make_timestamp(account.id)]
        mock_db_session.execute.return_value = listing

        response = await test_client.get("/api/v1/timestamps/dQw4w9WgXcQ", headers=headers)
        assert response.status_code == 200
        assert len(response.json()["timestamps"]) == 1
        assert response.headers["X-Total-Count"] == "1"

        _returning_one(mock_db_session, None)
        response = await test_client.delete(f"/api/v1/timestamps/{uuid.uuid4()}", headers=headers)
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_malformed_id(self, test_client, fake_store, token_issuer):
        account = await fake_store.insert(make_account())
        headers = {"Authorization": f"Bearer {token_issuer.issue_pair(account.id).access_token}"}

        response = await test_client.delete("/api/v1/timestamps/not-a-uuid", headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_REQUEST"
