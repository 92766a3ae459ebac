from __future__ import annotations

import pytest

from voice_studio.repository import VoiceRepository


@pytest.fixture
async def repository(tmp_path):
    repo = VoiceRepository(tmp_path / "voices.db")
    await repo.initialize()
    try:
        yield repo
    finally:
        await repo.close()


@pytest.mark.anyio
async def test_create_and_fetch_voice(repository):
    record = await repository.create_voice(
        user_id="user-1",
        voice_id="perm-1",
        name="Narrator",
        description="A calm narrator",
        settings={"stability": 0.4},
    )

    fetched = await repository.get_voice("user-1", record["id"])

    assert fetched is not None
    assert fetched["voice_id"] == "perm-1"
    assert fetched["name"] == "Narrator"
    assert fetched["preview_url"] is None
    assert fetched["settings"] == {"stability": 0.4}
    assert fetched["created_at"].endswith("+00:00")
    assert fetched["created_at"] == fetched["updated_at"]


@pytest.mark.anyio
async def test_list_voices_newest_first_and_scoped_by_user(repository):
    first = await repository.create_voice(user_id="user-1", voice_id="a", name="First")
    second = await repository.create_voice(user_id="user-1", voice_id="b", name="Second")
    await repository.create_voice(user_id="user-2", voice_id="c", name="Other")

    voices = await repository.list_voices("user-1")

    assert [voice["id"] for voice in voices] == [second["id"], first["id"]]


@pytest.mark.anyio
async def test_other_users_cannot_modify_voice(repository):
    record = await repository.create_voice(user_id="user-1", voice_id="a", name="Mine")

    assert await repository.get_voice("user-2", record["id"]) is None
    assert await repository.update_voice("user-2", record["id"], {"name": "x"}) is None
    assert await repository.delete_voice("user-2", record["id"]) is False
    assert await repository.get_voice("user-1", record["id"]) is not None


@pytest.mark.anyio
async def test_update_voice_changes_only_known_columns(repository):
    record = await repository.create_voice(user_id="user-1", voice_id="a", name="Old")

    updated = await repository.update_voice(
        "user-1",
        record["id"],
        {"name": "New", "settings": {"style": 0.2}, "voice_id": "ignored"},
    )

    assert updated is not None
    assert updated["name"] == "New"
    assert updated["settings"] == {"style": 0.2}
    assert updated["voice_id"] == "a"
    assert updated["updated_at"] >= record["updated_at"]


@pytest.mark.anyio
async def test_delete_voice(repository):
    record = await repository.create_voice(user_id="user-1", voice_id="a", name="Gone")

    assert await repository.delete_voice("user-1", record["id"]) is True
    assert await repository.get_voice("user-1", record["id"]) is None
    assert await repository.delete_voice("user-1", record["id"]) is False
