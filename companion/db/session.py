import functools
import logging
import threading
from typing import Callable, Optional, TypeVar

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from companion.core.config import get_settings
from companion.core.errors import StorageError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)

SUBJECTS = "subjects"
RESULTS = "quizresults"
USERS = "users"
TOKENS = "authtokens"
STUDY_GUIDES = "studyguides"


def storage_guard(func: F) -> F:
    """Translate driver failures into StorageError (logged, never retried)."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PyMongoError as exc:
            logger.exception("MongoDB operation %s failed", func.__qualname__)
            raise StorageError() from exc

    return wrapper  # type: ignore[return-value]


class Database:
    """
    Owner of the Mongo client and database handle.

    Repositories receive their collection from here; swapping the backing
    store only requires new repository classes.
    """

    def __init__(self, uri: Optional[str] = None, db_name: Optional[str] = None) -> None:
        settings = get_settings()
        self.uri = uri or settings.mongo_uri
        self.db_name = db_name or settings.mongo_db_name
        self.client = MongoClient(self.uri)
        self.db = self.client[self.db_name]

    @storage_guard
    def init_indexes(self) -> None:
        self.db[SUBJECTS].create_index([("subjectName", ASCENDING)], unique=True)
        self.db[RESULTS].create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
        self.db[RESULTS].create_index([("subject", ASCENDING), ("term", ASCENDING), ("exam", ASCENDING)])
        self.db[USERS].create_index([("email", ASCENDING)], unique=True)
        self.db[TOKENS].create_index([("tokenHash", ASCENDING)], unique=True)
        # TTL index: Mongo drops expired tokens on its own
        self.db[TOKENS].create_index([("expiresAt", ASCENDING)], expireAfterSeconds=0)
        self.db[STUDY_GUIDES].create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])
        self.db[STUDY_GUIDES].create_index([("userId", ASCENDING), ("subject", ASCENDING), ("exam", ASCENDING)])


_db_lock = threading.Lock()
_db_instance: Optional[Database] = None


def get_db() -> Database:
    """Return the process-wide database handle, created on first use."""

    global _db_instance
    if _db_instance is None:
        with _db_lock:
            if _db_instance is None:
                _db_instance = Database()
    return _db_instance


def init_db() -> None:
    """Create indexes; data itself comes from the question-bank import script."""

    db = get_db()
    db.init_indexes()
    logger.info("MongoDB indexes ensured on database '%s'", db.db_name)
