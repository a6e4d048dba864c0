"""
Document store abstractions

The ledger only needs a small capability set from its storage engine:
- get / set (with merge) of a document by slash-separated path
- optimistic read-modify-write transactions
- ordered, limited queries over one collection
- live, cancellable subscriptions to a document or a query

Paths alternate collection and document ids, e.g. 'users/U/data/stats'.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Document = Dict[str, Any]


def split_path(path: str) -> tuple[str, str]:
    """Split a document path into (collection path, document id)"""
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2 or len(parts) % 2:
        raise ValueError(f"'{path}' is not a document path")
    return "/".join(parts[:-1]), parts[-1]


def merge_documents(existing: Optional[Document], update: Document) -> Document:
    """Shallow merge: fields in update replace, untouched fields are kept"""
    merged = copy.deepcopy(existing) if existing else {}
    merged.update(copy.deepcopy(update))
    return merged


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time view of one document (data is None when absent)"""
    path: str
    data: Optional[Document] = None

    @property
    def id(self) -> str:
        return split_path(self.path)[1]

    @property
    def exists(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class Query:
    """Ordered, limited read over the direct children of one collection"""
    collection: str
    order_by: str
    descending: bool = False
    limit: Optional[int] = None

    def apply(self, snapshots: List[DocumentSnapshot]) -> List[DocumentSnapshot]:
        """Order and truncate snapshots; documents without the field are left out"""
        present = [s for s in snapshots if s.data is not None and s.data.get(self.order_by) is not None]
        # Sort by id first so equal keys come back in a stable order
        present.sort(key=lambda s: s.id)
        present.sort(key=lambda s: s.data[self.order_by], reverse=self.descending)
        return present[: self.limit] if self.limit is not None else present


DocumentCallback = Callable[[DocumentSnapshot], None]
QueryCallback = Callable[[List[DocumentSnapshot]], None]


@dataclass
class Subscription:
    """Handle for a live watch; call unsubscribe() on teardown"""
    description: str
    _cancel: Optional[Callable[[], None]] = field(default=None, repr=False)
    active: bool = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._cancel:
            self._cancel()
        logger.debug(f"Unsubscribed from {self.description}")


class Transaction(ABC):
    """
    One optimistic read-modify-write attempt.

    All reads must happen before the first write. commit() raises
    TransactionConflict when any document read here changed after it was read.
    """

    def __init__(self) -> None:
        self._reads: Dict[str, Any] = {}
        self._writes: Dict[str, tuple[Document, bool]] = {}
        self._committed = False

    async def get(self, path: str) -> DocumentSnapshot:
        if self._writes:
            raise RuntimeError("Transactions must perform all reads before any writes")
        snapshot, version = await self._read(path)
        self._reads.setdefault(path, version)
        return snapshot

    def set(self, path: str, data: Document, merge: bool = False) -> None:
        split_path(path)
        self._writes[path] = (copy.deepcopy(data), merge)

    @property
    def writes(self) -> Dict[str, tuple[Document, bool]]:
        return self._writes

    async def commit(self) -> None:
        if self._committed:
            raise RuntimeError("Transaction already committed")
        await self._commit()
        self._committed = True

    @abstractmethod
    async def _read(self, path: str) -> tuple[DocumentSnapshot, Any]:
        """Return the snapshot and an opaque version token"""

    @abstractmethod
    async def _commit(self) -> None:
        """Validate read versions and apply writes atomically"""


class DocumentStore(ABC):
    """Transactional document store with snapshot subscriptions"""

    @abstractmethod
    async def get(self, path: str) -> DocumentSnapshot:
        ...

    @abstractmethod
    async def set(self, path: str, data: Document, merge: bool = False) -> None:
        ...

    @abstractmethod
    async def run_query(self, query: Query) -> List[DocumentSnapshot]:
        ...

    @abstractmethod
    def transaction(self) -> Transaction:
        ...

    @abstractmethod
    async def watch_document(self, path: str, callback: DocumentCallback) -> Subscription:
        """Push the current snapshot, then one per change, until unsubscribed"""

    @abstractmethod
    async def watch_query(self, query: Query, callback: QueryCallback) -> Subscription:
        """Push the current result set, then the full set on every change"""

    async def close(self) -> None:
        """Release connections and cancel outstanding watches"""
