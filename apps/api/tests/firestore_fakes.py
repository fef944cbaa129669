from itertools import count
from typing import Any


class FakeSnapshot:
    def __init__(self, doc_id: str, data: dict[str, Any] | None) -> None:
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict[str, Any] | None:
        return dict(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, collection: "FakeCollection", doc_id: str) -> None:
        self._collection = collection
        self.id = doc_id

    def set(self, data: dict[str, Any]) -> None:
        self._collection.failure_check()
        self._collection.docs[self.id] = dict(data)

    def get(self) -> FakeSnapshot:
        self._collection.failure_check()
        return FakeSnapshot(self.id, self._collection.docs.get(self.id))

    def update(self, data: dict[str, Any]) -> None:
        self._collection.failure_check()
        self._collection.docs[self.id].update(data)

    def delete(self) -> None:
        self._collection.failure_check()
        self._collection.docs.pop(self.id, None)


class FakeQuery:
    def __init__(self, collection: "FakeCollection", field: str, value: Any) -> None:
        self._collection = collection
        self._field = field
        self._value = value

    def stream(self):
        self._collection.failure_check()
        for doc_id, data in list(self._collection.docs.items()):
            if data.get(self._field) == self._value:
                yield FakeSnapshot(doc_id, data)


class FakeCollection:
    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.error: Exception | None = None
        self._ids = count(1)

    def failure_check(self) -> None:
        if self.error is not None:
            raise self.error

    def document(self, doc_id: str | None = None) -> FakeDocumentRef:
        return FakeDocumentRef(self, doc_id or f"deck-{next(self._ids)}")

    def where(self, *, filter) -> FakeQuery:
        assert filter.op_string == "=="
        return FakeQuery(self, filter.field_path, filter.value)


class FakeFirestore:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())
