from pathlib import Path

import pytest

from notabene.session import HistoryStore


@pytest.mark.asyncio
async def test_missing_history_loads_empty(tmp_path: Path):
    store = HistoryStore(tmp_path / "history.db")
    try:
        assert await store.load(tmp_path / "project") == []
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_save_and_load_per_directory(tmp_path: Path):
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()
    store = HistoryStore(tmp_path / "history.db")
    try:
        await store.save(first, [{"role": "user", "content": "hello"}])
        await store.save(second, [{"role": "user", "content": "other"}])

        assert await store.load(first) == [{"role": "user", "content": "hello"}]
        assert await store.load(second) == [{"role": "user", "content": "other"}]
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_directory_key_is_normalized(tmp_path: Path):
    project = tmp_path / "project"
    (project / "sub").mkdir(parents=True)
    store = HistoryStore(tmp_path / "history.db")
    try:
        await store.save(project / "sub" / "..", [{"role": "user", "content": "hi"}])

        assert await store.load(project) == [{"role": "user", "content": "hi"}]
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_save_replaces_previous_records(tmp_path: Path):
    store = HistoryStore(tmp_path / "history.db")
    try:
        await store.save(tmp_path, [{"role": "user", "content": "one"}])
        await store.save(tmp_path, [{"role": "user", "content": "two"}])

        assert await store.load(tmp_path) == [{"role": "user", "content": "two"}]
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_history_survives_reopening(tmp_path: Path):
    db_path = tmp_path / "nested" / "history.db"
    store = HistoryStore(db_path)
    await store.save(tmp_path, [{"role": "assistant", "content": "kept"}])
    await store.close()

    reopened = HistoryStore(db_path)
    try:
        assert await reopened.load(tmp_path) == [{"role": "assistant", "content": "kept"}]
    finally:
        await reopened.close()


@pytest.mark.asyncio
async def test_clear_reports_whether_anything_was_deleted(tmp_path: Path):
    store = HistoryStore(tmp_path / "history.db")
    try:
        await store.save(tmp_path, [{"role": "user", "content": "x"}])

        assert await store.clear(tmp_path) is True
        assert await store.clear(tmp_path) is False
        assert await store.load(tmp_path) == []
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_unreadable_records_are_discarded(tmp_path: Path):
    store = HistoryStore(tmp_path / "history.db")
    try:
        db = await store._ensure_db()
        await db.execute(
            "INSERT INTO history (launch_directory, records, updated_at) VALUES (?, ?, ?)",
            (str(tmp_path.resolve()), "{not json", "2026-01-01T00:00:00+00:00"),
        )
        await db.commit()

        assert await store.load(tmp_path) == []
    finally:
        await store.close()
