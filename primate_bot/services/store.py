"""Whole-collection persistence of key -> JSON record mappings."""

import logging
from typing import Any

from sqlalchemy import delete, select

from ..orm.base import KeyedDocument
from .database import DatabaseService

logger = logging.getLogger(__name__)


class CollectionStore:
    """Loads and saves one collection table as a single unit.

    Every save rewrites the whole table in one transaction; there is no
    incremental format.
    """

    def __init__(self, db: DatabaseService, document_cls: type[KeyedDocument]):
        self.db = db
        self.document_cls = document_cls

    @property
    def name(self) -> str:
        return self.document_cls.__tablename__

    async def load_all(self) -> dict[str, dict[str, Any]]:
        """Return every stored record keyed by its collection key."""
        async with self.db.session() as session:
            result = await session.execute(select(self.document_cls))
            documents = result.scalars().all()
            return {doc.key: dict(doc.payload) for doc in documents}

    async def save_all(self, records: dict[str, dict[str, Any]]) -> bool:
        """Replace the stored collection with ``records``.

        Returns:
            False if the write failed. The failure is logged, not raised.
        """
        try:
            async with self.db.session() as session:
                await session.execute(delete(self.document_cls))
                session.add_all(
                    self.document_cls(key=key, payload=payload)
                    for key, payload in records.items()
                )
            logger.debug("Saved %d record(s) to %s", len(records), self.name)
            return True
        except Exception as e:
            logger.error("Failed to save %s collection: %s", self.name, e, exc_info=True)
            return False
