# Overview: Service-layer document store; collections of JSON documents with atomic transactions.

"""
Document Store - collections of schemaless documents keyed by id

WHY: Users, counters and orders are stored as documents addressed by
(collection, id), the way a managed document database exposes them. Services
only ever talk to this contract, never to StoredDocument rows directly.

OPERATIONS:
- get / set (full overwrite) / create (refuses an existing id) /
  update (shallow merge) / delete by id
- add with a store-assigned id
- equality queries over top-level fields
- transactions: reads first, then writes, committed all-or-nothing
- move: set-then-delete inside one transaction (used to re-key a document)

CONCURRENCY: Every row carries a version column. A transaction that read a
document and then writes or deletes it fails with StaleDataError if another
writer committed in between; two transactions creating the same id collide
on the unique (collection, doc_id) key. Both are retried with backoff until
DOCUMENT_STORE_TRANSACTION_ATTEMPTS is exhausted.

SERVER_TIMESTAMP anywhere in written fields is replaced with the store's
clock (ISO-8601 UTC) at write time.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.attributes import flag_modified

from ..extensions import db
from ..models import StoredDocument
from storefront.time_utils import utcnow, to_utc_z
from .concurrency import lock_for_update, run_with_retry, TRANSACTION_CONFLICT_ERRORS


class PersistenceError(Exception):
    """Raised when a document store operation fails."""
    pass


class DocumentNotFoundError(PersistenceError):
    """Raised when an operation requires a document that does not exist."""
    pass


class DocumentExistsError(PersistenceError):
    """Raised when a create or move would overwrite an existing document."""
    pass


class TransactionError(PersistenceError):
    """Raised when a transaction handle is used out of order."""
    pass


class TransactionAbortedError(PersistenceError):
    """Raised when a transaction cannot commit within the retry policy."""
    pass


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def _resolve_sentinels(value: Any, now: str) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {key: _resolve_sentinels(item, now) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_resolve_sentinels(item, now) for item in value]
    return value


def _server_now() -> str:
    return to_utc_z(utcnow())


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time copy of a document. data is None when it does not exist."""
    collection: str
    id: str
    data: dict | None

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, field: str, default: Any = None) -> Any:
        if self.data is None:
            return default
        return self.data.get(field, default)

    def to_dict(self) -> dict | None:
        if self.data is None:
            return None
        return {"id": self.id, **self.data}


def _document_query(collection: str, doc_id: str):
    return db.session.query(StoredDocument).filter_by(collection=collection, doc_id=doc_id)


def _snapshot(collection: str, doc_id: str, row: StoredDocument | None) -> DocumentSnapshot:
    data = copy.deepcopy(row.data) if row is not None else None
    return DocumentSnapshot(collection=collection, id=doc_id, data=data)


def _write_row(collection: str, doc_id: str, row: StoredDocument | None, data: dict) -> StoredDocument:
    if row is None:
        row = StoredDocument(collection=collection, doc_id=doc_id, data=data)
        db.session.add(row)
    else:
        row.data = data
        # Force the versioned UPDATE even when the payload is unchanged
        flag_modified(row, "data")
    return row


def _json_equals(field: str, value: Any):
    element = StoredDocument.data[field]
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    if isinstance(value, str):
        return element.as_string() == value
    raise ValueError(f"Unsupported filter value for '{field}': {value!r}")


def _filtered_query(collection: str, filters: dict):
    if not filters:
        raise ValueError("At least one filter is required")
    q = db.session.query(StoredDocument).filter(StoredDocument.collection == collection)
    for field, value in filters.items():
        q = q.filter(_json_equals(field, value))
    return q


class Transaction:
    """
    Handle passed to run_transaction callbacks.

    Reads lock the row and are recorded; writes are buffered and applied in
    call order when the callback returns. Reading after the first write is an
    error, matching managed document databases.
    """

    def __init__(self):
        self._rows: dict[tuple[str, str], StoredDocument | None] = {}
        self._writes: list[tuple[str, str, str, dict | None]] = []

    def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        if self._writes:
            raise TransactionError("Transactions require all reads to be executed before all writes")
        row = lock_for_update(_document_query(collection, doc_id)).first()
        self._rows[(collection, doc_id)] = row
        return _snapshot(collection, doc_id, row)

    def count_equal(self, collection: str, filters: dict) -> int:
        """Count matching documents in the same session; a read, so before any write."""
        if self._writes:
            raise TransactionError("Transactions require all reads to be executed before all writes")
        return _filtered_query(collection, filters).count()

    def set(self, collection: str, doc_id: str, fields: dict) -> None:
        self._writes.append(("set", collection, doc_id, dict(fields)))

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        self._writes.append(("update", collection, doc_id, dict(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(("delete", collection, doc_id, None))

    def commit(self) -> None:
        now = _server_now()
        for op, collection, doc_id, fields in self._writes:
            key = (collection, doc_id)
            if key in self._rows:
                row = self._rows[key]
            else:
                row = _document_query(collection, doc_id).first()

            if op == "delete":
                if row is not None:
                    db.session.delete(row)
                    # Flush so a later set of the same id inserts after the delete
                    db.session.flush()
                self._rows[key] = None
                continue

            if op == "update":
                if row is None:
                    raise DocumentNotFoundError(f"Document {collection}/{doc_id} not found")
                data = {**row.data, **_resolve_sentinels(fields, now)}
            else:
                data = _resolve_sentinels(fields, now)

            self._rows[key] = _write_row(collection, doc_id, row, data)

        db.session.commit()


class DocumentStore:
    """Document-database contract backed by the SQLAlchemy session."""

    def init_app(self, app) -> None:
        app.config.setdefault("DOCUMENT_STORE_TRANSACTION_ATTEMPTS", 5)
        app.config.setdefault("DOCUMENT_STORE_RETRY_BACKOFF", 0.05)
        app.extensions["document_store"] = self

    def _retry_policy(self) -> dict:
        return {
            "attempts": current_app.config["DOCUMENT_STORE_TRANSACTION_ATTEMPTS"],
            "backoff_base": current_app.config["DOCUMENT_STORE_RETRY_BACKOFF"],
        }

    def _execute(self, func, description: str):
        try:
            return run_with_retry(func, **self._retry_policy())
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f"Failed to {description}: {exc}") from exc
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def new_document_id() -> str:
        """Store-assigned id: 20 lowercase hex characters."""
        return uuid.uuid4().hex[:20]

    def get_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        def _op():
            return _snapshot(collection, doc_id, _document_query(collection, doc_id).first())

        return self._execute(_op, f"get {collection}/{doc_id}")

    def set_document(self, collection: str, doc_id: str, fields: dict) -> None:
        def _op():
            row = _document_query(collection, doc_id).first()
            _write_row(collection, doc_id, row, _resolve_sentinels(dict(fields), _server_now()))
            db.session.commit()

        self._execute(_op, f"set {collection}/{doc_id}")

    def create_document(self, collection: str, doc_id: str, fields: dict) -> None:
        """Write a new document; raises DocumentExistsError if doc_id is taken."""
        def _create(transaction: Transaction) -> None:
            if transaction.get(collection, doc_id).exists:
                raise DocumentExistsError(f"Document {collection}/{doc_id} already exists")
            transaction.set(collection, doc_id, fields)

        self.run_transaction(_create)

    def update_document(self, collection: str, doc_id: str, fields: dict) -> None:
        def _op():
            row = _document_query(collection, doc_id).first()
            if row is None:
                raise DocumentNotFoundError(f"Document {collection}/{doc_id} not found")
            _write_row(collection, doc_id, row, {**row.data, **_resolve_sentinels(dict(fields), _server_now())})
            db.session.commit()

        self._execute(_op, f"update {collection}/{doc_id}")

    def delete_document(self, collection: str, doc_id: str) -> None:
        def _op():
            row = _document_query(collection, doc_id).first()
            if row is not None:
                db.session.delete(row)
                db.session.commit()

        self._execute(_op, f"delete {collection}/{doc_id}")

    def add_document(self, collection: str, fields: dict) -> str:
        doc_id = self.new_document_id()
        self.set_document(collection, doc_id, fields)
        return doc_id

    def query_equal(self, collection: str, filters: dict) -> list[DocumentSnapshot]:
        """Documents whose top-level fields equal every filter value, oldest first."""
        def _op():
            rows = _filtered_query(collection, filters).order_by(StoredDocument.id.asc()).all()
            return [_snapshot(collection, row.doc_id, row) for row in rows]

        return self._execute(_op, f"query {collection}")

    def count_equal(self, collection: str, filters: dict) -> int:
        def _op():
            return _filtered_query(collection, filters).count()

        return self._execute(_op, f"count {collection}")

    def list_documents(self, collection: str) -> list[DocumentSnapshot]:
        def _op():
            rows = (
                db.session.query(StoredDocument)
                .filter_by(collection=collection)
                .order_by(StoredDocument.id.asc())
                .all()
            )
            return [_snapshot(collection, row.doc_id, row) for row in rows]

        return self._execute(_op, f"list {collection}")

    def run_transaction(self, func: Callable[[Transaction], Any]) -> Any:
        """
        Run func(transaction) and commit its writes atomically.

        func may run more than once when a concurrent writer wins the race,
        so it must not have side effects outside the transaction handle.
        Exceptions raised by func roll back and propagate unchanged.
        """
        policy = self._retry_policy()

        def _attempt():
            transaction = Transaction()
            result = func(transaction)
            transaction.commit()
            return result

        try:
            return run_with_retry(_attempt, retry_on=TRANSACTION_CONFLICT_ERRORS, **policy)
        except TRANSACTION_CONFLICT_ERRORS as exc:
            db.session.rollback()
            raise TransactionAbortedError(
                f"Transaction failed after {policy['attempts']} attempts: {exc}"
            ) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f"Transaction failed: {exc}") from exc
        except Exception:
            db.session.rollback()
            raise

    def move_document(
        self,
        collection: str,
        old_id: str,
        new_id: str,
        transform: Callable[[dict], dict],
    ) -> str:
        """
        Atomically re-key a document: write transform(old data) at new_id,
        then delete old_id. Refuses to overwrite an existing new_id.
        """
        if old_id == new_id:
            raise ValueError("Source and target ids must differ")

        def _move(transaction: Transaction) -> str:
            source = transaction.get(collection, old_id)
            if not source.exists:
                raise DocumentNotFoundError(f"Document {collection}/{old_id} no longer exists")
            target = transaction.get(collection, new_id)
            if target.exists:
                raise DocumentExistsError(f"Document {collection}/{new_id} already exists")
            transaction.set(collection, new_id, transform(source.data))
            transaction.delete(collection, old_id)
            return new_id

        return self.run_transaction(_move)


document_store = DocumentStore()
