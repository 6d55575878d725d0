import pytest

from itmanager.storage.local_store import FileLocalStorage, InMemoryLocalStorage


@pytest.mark.unit
class TestFileLocalStorage:
    async def test_set_get_roundtrip(self, tmp_path) -> None:
        storage = FileLocalStorage(tmp_path / "ns")
        await storage.set_item("bmr_session", '{"a": 1}')
        assert await storage.get_item("bmr_session") == '{"a": 1}'

    async def test_missing_key_is_none(self, tmp_path) -> None:
        storage = FileLocalStorage(tmp_path / "ns")
        assert await storage.get_item("current_tenant_id") is None

    async def test_survives_new_instance(self, tmp_path) -> None:
        await FileLocalStorage(tmp_path / "ns").set_item("current_tenant_id", "T1")
        assert await FileLocalStorage(tmp_path / "ns").get_item("current_tenant_id") == "T1"

    async def test_remove_item_ignores_missing(self, tmp_path) -> None:
        storage = FileLocalStorage(tmp_path / "ns")
        await storage.remove_item("current_tenant_id")
        await storage.set_item("current_tenant_id", "T1")
        await storage.remove_item("current_tenant_id")
        assert await storage.get_item("current_tenant_id") is None

    async def test_clear_removes_namespace(self, tmp_path) -> None:
        storage = FileLocalStorage(tmp_path / "ns")
        await storage.set_item("bmr_session", "x")
        await storage.clear()
        assert not (tmp_path / "ns").exists()

    async def test_rejects_path_traversal(self, tmp_path) -> None:
        storage = FileLocalStorage(tmp_path / "ns")
        with pytest.raises(ValueError, match="Invalid storage key"):
            await storage.set_item("../escape", "x")


@pytest.mark.unit
class TestInMemoryLocalStorage:
    async def test_initial_and_snapshot(self) -> None:
        storage = InMemoryLocalStorage({"current_tenant_id": "T1"})
        await storage.set_item("bmr_session", "{}")
        assert storage.snapshot() == {"current_tenant_id": "T1", "bmr_session": "{}"}
        await storage.clear()
        assert storage.snapshot() == {}
