import sqlite3

import pytest

from botcmd.errors import StoreFailure
from botcmd.security import DocumentCipher
from botcmd.store import MemoryKeyValueStore, SqliteKeyValueStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "bot.sqlite3"


@pytest.mark.asyncio
async def test_memory_store_get_put_delete():
    store = MemoryKeyValueStore({"a": "1"})
    assert await store.get("a") == "1"
    await store.put("a", "2")
    await store.delete("missing")
    assert store.snapshot() == {"a": "2"}
    await store.delete("a")
    assert await store.get("a") is None


@pytest.mark.asyncio
async def test_sqlite_store_last_write_wins(db_path):
    store = SqliteKeyValueStore(db_path)
    assert await store.get("user_config:1") is None
    await store.put("user_config:1", '{"A": 1}')
    await store.put("user_config:1", '{"A": 2}')
    assert await store.get("user_config:1") == '{"A": 2}'
    await store.delete("user_config:1")
    assert await store.get("user_config:1") is None
    store.close()


@pytest.mark.asyncio
async def test_sqlite_store_persists_across_connections(db_path):
    store = SqliteKeyValueStore(db_path)
    await store.put("history:1", "[]")
    store.close()

    reopened = SqliteKeyValueStore(db_path)
    assert await reopened.get("history:1") == "[]"
    reopened.close()


@pytest.mark.asyncio
async def test_encrypted_documents_are_not_stored_in_clear_text(db_path):
    cipher = DocumentCipher(DocumentCipher.generate_key())
    store = SqliteKeyValueStore(db_path, cipher=cipher)
    await store.put("user_config:1", '{"OPENAI_API_KEY": "sk-secret"}')
    assert await store.get("user_config:1") == '{"OPENAI_API_KEY": "sk-secret"}'
    store.close()

    with sqlite3.connect(db_path) as conn:
        value, encrypted = conn.execute("SELECT value, encrypted FROM kv_documents").fetchone()
    assert encrypted == 1
    assert "sk-secret" not in value


@pytest.mark.asyncio
async def test_encrypted_row_without_cipher_fails(db_path):
    store = SqliteKeyValueStore(db_path, cipher=DocumentCipher(DocumentCipher.generate_key()))
    await store.put("k", "v")
    store.close()

    plain = SqliteKeyValueStore(db_path)
    with pytest.raises(StoreFailure):
        await plain.get("k")
    plain.close()


@pytest.mark.asyncio
async def test_wrong_key_fails(db_path):
    store = SqliteKeyValueStore(db_path, cipher=DocumentCipher(DocumentCipher.generate_key()))
    await store.put("k", "v")
    store.close()

    other = SqliteKeyValueStore(db_path, cipher=DocumentCipher(DocumentCipher.generate_key()))
    with pytest.raises(StoreFailure):
        await other.get("k")
    other.close()


@pytest.mark.asyncio
async def test_closed_connection_raises_store_failure(db_path):
    store = SqliteKeyValueStore(db_path)
    store.close()
    with pytest.raises(StoreFailure):
        await store.put("k", "v")
