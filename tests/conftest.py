"""Common utilities for tests."""

from __future__ import annotations

import threading
from typing import Any, Iterator, Optional
from unittest.mock import patch

from mockfirestore import CollectionReference, Query
from mockfirestore.document import DocumentReference


class MockArrayUnion:
    def __init__(self, values: list[Any]) -> None:
        self.values = values

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


class MockArrayRemove:
    def __init__(self, values: list[Any]) -> None:
        self.values = values

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


def patch_mockfirestore() -> None:
    """Apply monkeypatches to mockfirestore to support FieldFilter and array transforms."""

    def collection_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:  # noqa: E501
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    if not hasattr(CollectionReference, "_where"):
        CollectionReference._where = CollectionReference.where
        CollectionReference.where = collection_where

    def query_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    if not hasattr(Query, "_where"):
        Query._where = Query.where
        Query.where = query_where

    if not hasattr(DocumentReference, "_orig_update"):
        DocumentReference._orig_update = DocumentReference.update

        def patched_update(self: Any, data: dict[str, Any]) -> Any:
            current_data = self.get().to_dict() or {}
            new_data = {}
            for k, v in data.items():
                if isinstance(v, MockArrayUnion):
                    existing = current_data.get(k, [])
                    if not isinstance(existing, list):
                        existing = []
                    merged = list(existing)
                    for item in v.values:
                        if item not in merged:
                            merged.append(item)
                    new_data[k] = merged
                elif isinstance(v, MockArrayRemove):
                    existing = current_data.get(k, [])
                    if not isinstance(existing, list):
                        existing = []
                    new_data[k] = [i for i in existing if i not in v.values]
                else:
                    new_data[k] = v
            return self._orig_update(new_data)

        DocumentReference.update = patched_update


def array_transform_patchers() -> list[Any]:
    """Patchers swapping Firestore array transforms for their mock versions."""
    return [
        patch("firebase_admin.firestore.ArrayUnion", MockArrayUnion),
        patch("firebase_admin.firestore.ArrayRemove", MockArrayRemove),
    ]


class RecordingSubscriber:
    """Fanout handle that records what it receives."""

    def __init__(self, user_id: str, fail: bool = False) -> None:
        self.user_id = user_id
        self.fail = fail
        self.received: list[tuple[str, Any]] = []
        self.gate: threading.Event | None = None

    def deliver(self, event: str, payload: Any) -> None:
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.fail:
            raise ConnectionError(f"socket for {self.user_id} is gone")
        self.received.append((event, payload))

    def __repr__(self) -> str:
        return f"RecordingSubscriber({self.user_id})"
