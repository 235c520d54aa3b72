from datetime import UTC, datetime

import pytest

from aforo.domain.exceptions import WriteError
from aforo.infrastructure.sqlite_document_store import (
    SqliteDocumentStore,
    decode_document,
    encode_document,
)

AT = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteDocumentStore(str(tmp_path / "store.db"))
    yield store
    store.close()


class TestDocumentCodec:
    def test_datetimes_survive(self):
        data = {"at": AT, "nested": {"by": "Ana", "at": AT}, "items": [AT]}
        assert decode_document(encode_document(data)) == data

    def test_non_ascii_kept(self):
        assert "Digitación" in encode_document({"s": "Digitación"})


class TestSqliteDocumentStore:
    def test_missing_document(self, sqlite_store):
        assert sqlite_store.get_document("AforoCases/NE-1") is None

    def test_create_and_read(self, sqlite_store):
        batch = sqlite_store.begin_batch()
        batch.create("AforoCases/NE-1", {"ne": "NE-1", "createdAt": AT})
        batch.commit()

        assert sqlite_store.get_document("AforoCases/NE-1") == {"ne": "NE-1", "createdAt": AT}

    def test_upsert_merges_fields(self, sqlite_store):
        batch = sqlite_store.begin_batch()
        batch.create("AforoCases/NE-1", {"ne": "NE-1", "aforador": ""})
        batch.commit()

        batch = sqlite_store.begin_batch()
        batch.upsert("AforoCases/NE-1", {"aforador": "Jane"})
        batch.commit()

        assert sqlite_store.get_document("AforoCases/NE-1") == {"ne": "NE-1", "aforador": "Jane"}

    def test_failed_create_rolls_back_whole_batch(self, sqlite_store):
        seed = sqlite_store.begin_batch()
        seed.create("AforoCases/NE-1", {"ne": "NE-1"})
        seed.commit()

        batch = sqlite_store.begin_batch()
        batch.upsert("AforoCases/NE-2", {"ne": "NE-2"})
        batch.create("AforoCases/NE-1", {"ne": "duplicado"})
        with pytest.raises(WriteError, match="ya existe"):
            batch.commit()

        assert sqlite_store.get_document("AforoCases/NE-2") is None
        assert sqlite_store.get_document("AforoCases/NE-1") == {"ne": "NE-1"}

    def test_batch_commits_only_once(self, sqlite_store):
        batch = sqlite_store.begin_batch()
        batch.upsert("AforoCases/NE-1", {"ne": "NE-1"})
        batch.commit()
        with pytest.raises(WriteError):
            batch.commit()

    def test_invalid_path_rejected_when_queued(self, sqlite_store):
        with pytest.raises(ValueError):
            sqlite_store.begin_batch().create("AforoCases", {})

    def test_list_is_scoped_to_parent(self, sqlite_store):
        batch = sqlite_store.begin_batch()
        batch.create("AforoCases/NE-1", {"ne": "NE-1"})
        batch.create("AforoCases/NE-1/actualizaciones/b", {"field": "x"})
        batch.create("AforoCases/NE-1/actualizaciones/a", {"field": "y"})
        batch.create("AforoCases/NE-2/actualizaciones/c", {"field": "z"})
        batch.commit()

        docs = sqlite_store.list_documents("AforoCases/NE-1/actualizaciones")

        assert [d.id for d in docs] == ["a", "b"]
        assert [d.id for d in sqlite_store.list_documents("AforoCases")] == ["NE-1"]

    def test_query_filters(self, sqlite_store):
        batch = sqlite_store.begin_batch()
        batch.create("SolicitudCheques/1", {"examNe": "NE-1", "paymentStatus": "Pagado"})
        batch.create("SolicitudCheques/2", {"examNe": "NE-2", "paymentStatus": "Pagado"})
        batch.create("SolicitudCheques/3", {"examNe": "NE-1", "paymentStatus": None})
        batch.commit()

        docs = sqlite_store.query("SolicitudCheques", [("examNe", "==", "NE-1")])
        assert [d.id for d in docs] == ["1", "3"]

        docs = sqlite_store.query("SolicitudCheques", [("examNe", "in", ["NE-2", "NE-9"])])
        assert [d.id for d in docs] == ["2"]

    def test_unsupported_operator(self, sqlite_store):
        batch = sqlite_store.begin_batch()
        batch.create("SolicitudCheques/1", {"examNe": "NE-1"})
        batch.commit()
        with pytest.raises(ValueError, match="Operador"):
            sqlite_store.query("SolicitudCheques", [("examNe", ">", 1)])
