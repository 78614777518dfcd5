# ==============================================
# MongoClient
# ==============================================
#
# PURPOSE:
#   Manages the MongoDB connection and provides the two primitives
#   the sampling pipeline consumes: count() and sample().
#
# WHY THIS CLASS EXISTS:
#   The pipeline only knows a DataService with count/sample. This
#   class is the pymongo-backed implementation of it.
#
# CLASS: MongoClient
# ------------------
#   Stateful, holds a pymongo client.
#
#   Constructor:
#   ------------
#   - __init__(host, port, user=None, password=None, uri=None)
#       `uri` wins over host/port/user/password when given.
#
#   Methods:
#   --------
#   - connect() -> None          Open the connection and ping the server.
#   - disconnect() -> None
#   - count(namespace, filter, options: CountOptions) -> int
#       count_documents(filter, maxTimeMS=...) on the namespace.
#   - sample(namespace, options: SampleOptions) -> CommandCursor
#       aggregate([{$match: filter}, {$sample: {size}}], maxTimeMS=...)
#   - list_collections(database) -> list[str]
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with MongoClient(...) as db:` usage.
#
# ERRORS:
#   pymongo.errors.* are raised unchanged; the pipeline turns them
#   into a count or sample-stream failure.
#
# ==============================================

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from pymongo import MongoClient as PyMongoClient
from pymongo import ReadPreference as PyReadPreference
from pymongo.collection import Collection
from pymongo.command_cursor import CommandCursor
from pymongo.errors import ConnectionFailure, OperationFailure

from schema_sampler.sampling.errors import SamplerError
from schema_sampler.sampling.request import CountOptions, Namespace, ReadPreference, SampleOptions

logger = logging.getLogger(__name__)

READ_PREFERENCES = {
    ReadPreference.PRIMARY: PyReadPreference.PRIMARY,
    ReadPreference.PRIMARY_PREFERRED: PyReadPreference.PRIMARY_PREFERRED,
    ReadPreference.SECONDARY: PyReadPreference.SECONDARY,
    ReadPreference.SECONDARY_PREFERRED: PyReadPreference.SECONDARY_PREFERRED,
    ReadPreference.NEAREST: PyReadPreference.NEAREST,
}


class NotConnected(SamplerError):
    """Raised when an operation needs a connection that was never opened."""


class MongoClient:
    def __init__(
        self,
        host: str = "localhost",
        port: int = 27017,
        user: Optional[str] = None,
        password: Optional[str] = None,
        uri: Optional[str] = None
    ):
        # Store connection params. Don't connect yet.
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.uri = uri
        self.client: Optional[PyMongoClient] = None

    def build_uri(self) -> str:
        if self.uri:
            return self.uri
        if self.user and self.password:
            return f"mongodb://{quote_plus(self.user)}:{quote_plus(self.password)}@{self.host}:{self.port}/"
        return f"mongodb://{self.host}:{self.port}/"

    def connect(self) -> None:
        if self.client is not None:
            return
        self.client = PyMongoClient(self.build_uri())
        try:
            self.client.admin.command("ping")
        except ConnectionFailure as e:
            logger.error("Could not connect to MongoDB: %s", e)
            self.disconnect()
            raise
        except OperationFailure as e:
            logger.error("MongoDB authentication failed: %s", e)
            self.disconnect()
            raise
        logger.info("Connected to MongoDB at %s:%s", self.host, self.port)

    def disconnect(self) -> None:
        if self.client:
            self.client.close()
            self.client = None
            logger.info("Disconnected from MongoDB")

    def _collection(self, namespace: str, read_preference: ReadPreference) -> Collection:
        if self.client is None:
            raise NotConnected("Not connected to MongoDB")
        ns = Namespace.parse(namespace)
        collection = self.client[ns.database][ns.collection]
        return collection.with_options(read_preference=READ_PREFERENCES[read_preference])

    def count(self, namespace: str, filter: Dict[str, Any], options: CountOptions) -> int:
        """
        Count documents in `namespace` matching `filter`.

        A max_time_ms of 0 means no server-side limit.
        """
        collection = self._collection(namespace, options.read_preference)
        kwargs = {}
        if options.max_time_ms:
            kwargs["maxTimeMS"] = options.max_time_ms
        return collection.count_documents(filter or {}, **kwargs)

    def sample(self, namespace: str, options: SampleOptions) -> CommandCursor:
        """
        Open a cursor over a random sample of at most `options.size`
        documents matching `options.filter`.
        """
        collection = self._collection(namespace, options.read_preference)
        pipeline: List[Dict[str, Any]] = []
        if options.filter:
            pipeline.append({"$match": options.filter})
        pipeline.append({"$sample": {"size": options.size}})

        kwargs = {"allowDiskUse": True}
        if options.max_time_ms:
            kwargs["maxTimeMS"] = options.max_time_ms
        return collection.aggregate(pipeline, **kwargs)

    def list_collections(self, database: str) -> List[str]:
        if self.client is None:
            raise NotConnected("Not connected to MongoDB")
        return sorted(self.client[database].list_collection_names())

    def __enter__(self):
        # For `with MongoClient(...) as db:` usage.
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
