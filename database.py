"""
MongoDB record store for players, matches and shots.

Each entity collection lives in its own Mongo collection. A stored document
wraps the record as written by the caller:

    {"_id": <record id>, "_seq": <first-write order>, "record": {...}}

so reads come back in insertion order and the record itself is returned
untouched. Writes are all-or-nothing per call: the touched documents are
snapshotted first and restored if any write fails.
"""

import logging
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, Union

from pydantic import ValidationError as PydanticValidationError
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import FormatError, StorageError
from schemas import BackupDocument, Match, Player, Record, Shot

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "mongodb://localhost:27017"
DEFAULT_DATABASE_NAME = "badminton_analysis"

MODELS: Dict[str, Type[Record]] = {
    "players": Player,
    "matches": Match,
    "shots": Shot,
}
COLLECTIONS = tuple(MODELS)
COUNTERS = "counters"


class RecordStore:
    """Keyed storage of the three entity collections plus backup/restore."""

    def __init__(self, url: Optional[str] = None, name: Optional[str] = None,
                 client: Optional[MongoClient] = None):
        self.url = url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
        self.name = name or os.getenv("DATABASE_NAME", DEFAULT_DATABASE_NAME)
        self._client = client
        self._db: Optional[Database] = None

    @property
    def initialized(self) -> bool:
        return self._db is not None

    def init(self) -> Database:
        """Connect on first use. Later calls return the same handle."""
        if self._db is not None:
            return self._db
        try:
            if self._client is None:
                self._client = MongoClient(self.url, serverSelectionTimeoutMS=5000)
            db = self._client[self.name]
            for collection in COLLECTIONS:
                db[collection].create_index([("_seq", ASCENDING)])
        except PyMongoError as exc:
            raise StorageError(f"Database {self.name!r} is not available: {exc}") from exc
        self._db = db
        logger.info("Connected to database %s", self.name)
        return db

    # --------- Reads ---------

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        self._model(collection)
        db = self.init()
        try:
            cursor = db[collection].find({}, {"record": 1}).sort("_seq", ASCENDING)
            return [doc["record"] for doc in cursor]
        except PyMongoError as exc:
            raise StorageError(f"Failed to read {collection}: {exc}") from exc

    def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        self._model(collection)
        db = self.init()
        try:
            doc = db[collection].find_one({"_id": record_id}, {"record": 1})
        except PyMongoError as exc:
            raise StorageError(f"Failed to read {collection}/{record_id}: {exc}") from exc
        return doc["record"] if doc else None

    def export_all(self) -> Dict[str, List[Dict[str, Any]]]:
        return {collection: self.get_all(collection) for collection in COLLECTIONS}

    def export_json(self, indent: int = 2) -> str:
        return BackupDocument.model_validate(self.export_all()).model_dump_json(
            indent=indent, by_alias=True, exclude_none=True)

    # --------- Writes ---------

    def put_all(self, collection: str, records: Iterable[Any]) -> None:
        """Upsert records by id. Later records win over earlier ones with the same id."""
        docs = self._validate(collection, records)
        if not docs:
            return
        self._apply({collection: docs})
        logger.debug("Stored %d %s", len(docs), collection)

    def replace_all(self, collection: str, records: Iterable[Any]) -> None:
        """Make the collection hold exactly these records."""
        self.replace_collections({collection: records})

    def replace_collections(self, collections: Mapping[str, Iterable[Any]]) -> None:
        plan = {name: self._validate(name, records) for name, records in collections.items()}
        self._apply(plan, replace=True)
        logger.info("Replaced %s", ", ".join(f"{name} ({len(docs)})" for name, docs in plan.items()))

    def delete_ids(self, removals: Mapping[str, Iterable[str]]) -> None:
        """Remove the given ids from each collection, all or none of them.

        Records not named here are left alone, including ones written after
        the caller decided what to remove.
        """
        scopes = {}
        for collection, ids in removals.items():
            self._model(collection)
            ids = list(ids)
            if ids:
                scopes[collection] = {"_id": {"$in": ids}}
        if not scopes:
            return

        db = self.init()
        snapshots = self._snapshot(db, scopes)
        try:
            for collection, scope in scopes.items():
                db[collection].delete_many(scope)
        except PyMongoError as exc:
            self._rollback(db, snapshots)
            raise StorageError(f"Delete rejected, nothing was changed: {exc}") from exc
        logger.info("Deleted %s", ", ".join(
            f"{name} ({len(scope['_id']['$in'])})" for name, scope in scopes.items()))

    def import_all(self, document: Union[str, bytes, Mapping[str, Any]]) -> None:
        """Restore a document produced by export_all (or its JSON text)."""
        try:
            if isinstance(document, (str, bytes)):
                backup = BackupDocument.model_validate_json(document)
            else:
                backup = BackupDocument.model_validate(document)
        except PydanticValidationError as exc:
            raise FormatError("Import document is not a valid backup", exc.errors()) from exc

        self._apply({
            "players": [p.to_document() for p in backup.players],
            "matches": [m.to_document() for m in backup.matches],
            "shots": [s.to_document() for s in backup.shots],
        })
        logger.info("Imported %d players, %d matches, %d shots",
                    len(backup.players), len(backup.matches), len(backup.shots))

    # --------- Internals ---------

    def _model(self, collection: str) -> Type[Record]:
        try:
            return MODELS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection!r}") from None

    def _validate(self, collection: str, records: Iterable[Any]) -> List[Dict[str, Any]]:
        model = self._model(collection)
        docs = []
        for index, record in enumerate(records):
            try:
                if not isinstance(record, model):
                    record = model.model_validate(record)
            except PydanticValidationError as exc:
                raise FormatError(f"{collection}[{index}] is not a valid record", exc.errors()) from exc
            docs.append(record.to_document())
        return docs

    def _reserve_seq(self, db: Database, collection: str, count: int) -> int:
        counter = db[COUNTERS].find_one_and_update(
            {"_id": collection},
            {"$inc": {"seq": count}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return counter["seq"] - count

    def _apply(self, plan: Mapping[str, List[Dict[str, Any]]], replace: bool = False) -> None:
        """Write every collection in the plan, or none of them."""
        db = self.init()
        snapshots = self._snapshot(db, {
            collection: {} if replace else {"_id": {"$in": [d["id"] for d in docs]}}
            for collection, docs in plan.items()
        })

        try:
            for collection, docs in plan.items():
                coll = db[collection]
                if replace:
                    coll.delete_many({"_id": {"$nin": [d["id"] for d in docs]}})
                if not docs:
                    continue
                seq = self._reserve_seq(db, collection, len(docs))
                for offset, doc in enumerate(docs):
                    coll.update_one(
                        {"_id": doc["id"]},
                        {"$set": {"record": doc}, "$setOnInsert": {"_seq": seq + offset}},
                        upsert=True,
                    )
        except PyMongoError as exc:
            self._rollback(db, snapshots)
            raise StorageError(f"Write rejected, nothing was changed: {exc}") from exc

    def _snapshot(self, db: Database, scopes: Mapping[str, Dict[str, Any]]) -> Dict[str, Any]:
        try:
            return {
                collection: (scope, list(db[collection].find(scope)))
                for collection, scope in scopes.items()
            }
        except PyMongoError as exc:
            raise StorageError(f"Failed to read before writing: {exc}") from exc

    def _rollback(self, db: Database, snapshots: Mapping[str, Any]) -> None:
        for collection, (scope, docs) in snapshots.items():
            try:
                db[collection].delete_many(scope)
                if docs:
                    db[collection].insert_many(docs)
            except PyMongoError:
                logger.exception("Rollback of %s failed; collection may be inconsistent", collection)


_store: Optional[RecordStore] = None


def get_store() -> RecordStore:
    """Get or create the process-wide store configured from the environment."""
    global _store
    if _store is None:
        _store = RecordStore()
    return _store


def set_store(store: Optional[RecordStore]) -> None:
    global _store
    _store = store
