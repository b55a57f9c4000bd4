import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.db_utils import translate_db_errors
from app.core.errors import ConflictError, PersistenceError


class FakeStore:
    def __init__(self, exc: Exception | None = None) -> None:
        self.db = AsyncMock()
        self.exc = exc

    @translate_db_errors("saving thing", conflict_message="Thing already exists")
    async def save(self) -> str:
        if self.exc:
            raise self.exc
        return "saved"

    @translate_db_errors("loading thing")
    async def load(self) -> str:
        if self.exc:
            raise self.exc
        return "loaded"


def _integrity() -> IntegrityError:
    return IntegrityError("INSERT ...", {}, Exception("UNIQUE constraint failed"))


class TestTranslateDbErrors:
    def test_passes_results_through(self):
        store = FakeStore()
        assert asyncio.run(store.save()) == "saved"
        store.db.rollback.assert_not_awaited()

    def test_integrity_error_becomes_conflict(self):
        store = FakeStore(_integrity())
        with pytest.raises(ConflictError, match="Thing already exists") as info:
            asyncio.run(store.save())
        assert isinstance(info.value.__cause__, IntegrityError)
        store.db.rollback.assert_awaited_once()

    def test_integrity_error_without_conflict_message(self):
        store = FakeStore(_integrity())
        with pytest.raises(PersistenceError, match="loading thing"):
            asyncio.run(store.load())

    def test_other_database_errors(self):
        store = FakeStore(OperationalError("SELECT 1", {}, Exception("connection lost")))
        with pytest.raises(PersistenceError) as info:
            asyncio.run(store.load())
        assert isinstance(info.value.__cause__, OperationalError)
        store.db.rollback.assert_awaited_once()

    def test_non_database_errors_propagate(self):
        store = FakeStore(ValueError("boom"))
        with pytest.raises(ValueError):
            asyncio.run(store.load())
        store.db.rollback.assert_not_awaited()
