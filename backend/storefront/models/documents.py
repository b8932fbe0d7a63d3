from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class StoredDocument(db.Model):
    """
    One schemaless document inside a named collection.

    WHY: The storefront persists users, counters and orders as documents
    keyed by (collection, doc_id). The JSON payload is opaque to the
    database; the version column gives every write a compare-and-swap check
    so concurrent transactions on the same document cannot both commit.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
        db.Index("ix_documents_collection", "collection"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(64), nullable=False)
    doc_id = db.Column(db.String(128), nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StoredDocument {self.collection}/{self.doc_id} v{self.version_id}>"

    def to_dict(self) -> dict:
        return {
            "collection": self.collection,
            "doc_id": self.doc_id,
            "data": self.data,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
