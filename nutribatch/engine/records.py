"""
Target Records and the Record Store Contract

The engine sees a record as a stable ordering key plus an opaque document.
It only ever reads pages, reads single records, and patches fields; records
are owned by the store and are never deleted by the engine.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from nutribatch.core.exceptions import RecordStoreError
from nutribatch.core.utils import new_record_id

logger = logging.getLogger(__name__)


class _DeleteField:
    """Sentinel patch value: remove the field (or null the column)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


@dataclass
class TargetRecord:
    key: str
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)


class RecordStore(Protocol):
    async def get_page(self, after_key: Optional[str], page_size: int) -> List[TargetRecord]:
        """Records ordered by key ascending, strictly after after_key."""
        ...

    async def get(self, key: str) -> Optional[TargetRecord]:
        ...

    async def patch(self, key: str, fields: Dict[str, Any]) -> None:
        """Merge fields into the record; DELETE_FIELD removes a field."""
        ...


def apply_patch(document: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Merge a patch into a document copy. Reapplying the same patch is a no-op."""
    merged = dict(document)
    for name, value in fields.items():
        if value is DELETE_FIELD:
            merged.pop(name, None)
        else:
            merged[name] = value
    return merged


class InMemoryRecordStore:
    """
    Dict-backed RecordStore.

    Keys are compared as strings, matching document-id ordering in the
    production store.
    """

    def __init__(self, documents: Optional[Dict[str, Dict[str, Any]]] = None):
        self._docs: Dict[str, Dict[str, Any]] = {}
        for key, doc in (documents or {}).items():
            self._docs[str(key)] = copy.deepcopy(doc)
        self.patch_calls: List[str] = []

    async def get_page(self, after_key: Optional[str], page_size: int) -> List[TargetRecord]:
        keys = sorted(self._docs)
        if after_key is not None:
            keys = [k for k in keys if k > after_key]
        return [TargetRecord(key=k, data=copy.deepcopy(self._docs[k])) for k in keys[:page_size]]

    async def get(self, key: str) -> Optional[TargetRecord]:
        doc = self._docs.get(key)
        if doc is None:
            return None
        return TargetRecord(key=key, data=copy.deepcopy(doc))

    async def patch(self, key: str, fields: Dict[str, Any]) -> None:
        if key not in self._docs:
            raise RecordStoreError(f"Record not found: {key}", key=key)
        self._docs[key] = apply_patch(self._docs[key], fields)
        self.patch_calls.append(key)

    async def add(self, document: Dict[str, Any], key: Optional[str] = None) -> str:
        """Insert a new record (used by jobs that create records as a side effect)."""
        if key is None:
            key = new_record_id()
        self._docs[key] = copy.deepcopy(document)
        return key

    def snapshot(self, key: str) -> Dict[str, Any]:
        return copy.deepcopy(self._docs[key])

    def __len__(self) -> int:
        return len(self._docs)
