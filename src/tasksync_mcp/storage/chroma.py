"""Chroma-based persistence layer for task and credential records."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from .models import Credential, LocalTaskRecord, TaskOrigin


class ChromaUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by the store."""

    def upsert(
        self,
        *,
        ids: Iterable[str],
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...

    def delete(self, *, ids: Iterable[str]) -> None:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by the store."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


def build_where(**filters: Any) -> dict[str, Any] | None:
    """Translate keyword filters into a Chroma ``where`` clause.

    Chroma only accepts a single key per clause, so several filters are
    combined with ``$and``. ``None`` values are dropped.
    """

    clauses = [{key: value} for key, value in filters.items() if value is not None]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class ChromaStore:
    """Persist process tasks and tracker credentials via ChromaDB."""

    def __init__(
        self,
        path: Path,
        *,
        tasks_collection: str = "process_tasks",
        credentials_collection: str = "tracker_credentials",
        client_factory: Callable[[], ClientProtocol] | None = None,
    ) -> None:
        self._path = Path(path)
        self._tasks_name = tasks_collection
        self._credentials_name = credentials_collection
        self._client_factory = client_factory or self._default_client_factory
        self._client: ClientProtocol | None = None
        self._collections: dict[str, CollectionProtocol] = {}

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise ChromaUnavailableError(
                "chromadb package is not installed; install tasksync-mcp with its storage dependencies"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _collection(self, name: str) -> CollectionProtocol:
        if name not in self._collections:
            client = self._client or self._client_factory()
            self._client = client
            self._collections[name] = client.get_or_create_collection(name)
        return self._collections[name]

    def ping(self) -> bool:
        """Verify that the underlying collections can be obtained."""

        self._collection(self._tasks_name)
        self._collection(self._credentials_name)
        return True

    # -- tasks -------------------------------------------------------------

    @staticmethod
    def _task_metadata(record: LocalTaskRecord) -> dict[str, Any]:
        # Chroma metadata values must be non-null scalars.
        return {
            "process_id": record.process_id,
            "origin": record.origin.value,
            "remote_id": record.remote_id or "",
            "is_subtask": record.is_subtask,
        }

    def list_tasks(
        self,
        process_id: str | None = None,
        *,
        origin: TaskOrigin | None = None,
    ) -> list[LocalTaskRecord]:
        collection = self._collection(self._tasks_name)
        where = build_where(
            process_id=process_id,
            origin=origin.value if origin is not None else None,
        )
        result = collection.get(where=where)
        records = [LocalTaskRecord.model_validate_json(doc) for doc in result.get("documents") or []]
        records.sort(key=lambda record: record.created_at)
        return records

    def get_task(self, record_id: str) -> LocalTaskRecord | None:
        collection = self._collection(self._tasks_name)
        result = collection.get(ids=[record_id])
        documents = result.get("documents") or []
        if not documents:
            return None
        return LocalTaskRecord.model_validate_json(documents[0])

    def upsert_task(self, record: LocalTaskRecord) -> LocalTaskRecord:
        collection = self._collection(self._tasks_name)
        collection.upsert(
            ids=[record.id],
            documents=[record.model_dump_json()],
            metadatas=[self._task_metadata(record)],
        )
        return record

    def delete_task(self, record_id: str) -> None:
        self._collection(self._tasks_name).delete(ids=[record_id])

    # -- credentials -------------------------------------------------------

    def get_credential(self, owner_id: str) -> Credential | None:
        collection = self._collection(self._credentials_name)
        result = collection.get(ids=[owner_id])
        documents = result.get("documents") or []
        if not documents:
            return None
        return Credential.model_validate_json(documents[0])

    def save_credential(self, credential: Credential) -> Credential:
        collection = self._collection(self._credentials_name)
        collection.upsert(
            ids=[credential.owner_id],
            documents=[credential.model_dump_json()],
            metadatas=[
                {
                    "owner_id": credential.owner_id,
                    "obtained_at": credential.obtained_at.isoformat(),
                }
            ],
        )
        return credential

    def delete_credential(self, owner_id: str) -> None:
        self._collection(self._credentials_name).delete(ids=[owner_id])


__all__ = ["ChromaStore", "ChromaUnavailableError", "build_where"]
