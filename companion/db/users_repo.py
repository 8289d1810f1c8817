from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from companion.core.errors import ValidationError
from companion.db.session import TOKENS, USERS, get_db, storage_guard


class UserRepo:
    """Mongo-backed repository for user documents."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection = collection if collection is not None else get_db().db[USERS]

    @storage_guard
    def insert(self, doc: Dict[str, Any]) -> None:
        try:
            self.collection.insert_one(doc)
        except DuplicateKeyError as exc:
            raise ValidationError("User already exists") from exc

    @storage_guard
    def find_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"_id": user_id})

    @storage_guard
    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"email": email})

    @storage_guard
    def find_many(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        return {doc["_id"]: doc for doc in self.collection.find({"_id": {"$in": ids}})}

    @storage_guard
    def update(self, user_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.collection.find_one_and_update(
            {"_id": user_id}, {"$set": patch}, return_document=ReturnDocument.AFTER
        )

    @storage_guard
    def update_subjects(
        self, user_id: str, add: List[str], remove: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        # $addToSet and $pull on the same path conflict in one update, so apply them in turn
        doc = None
        if add:
            doc = self.collection.find_one_and_update(
                {"_id": user_id},
                {"$addToSet": {"subjects": {"$each": add}}},
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                return None
        if remove:
            doc = self.collection.find_one_and_update(
                {"_id": user_id}, {"$pull": {"subjects": remove}}, return_document=ReturnDocument.AFTER
            )
        return doc


class InMemoryUserRepo(UserRepo):
    """Simple in-memory repo for unit tests."""

    def __init__(self) -> None:
        self.storage: Dict[str, Dict[str, Any]] = {}

    def insert(self, doc: Dict[str, Any]) -> None:
        if any(existing.get("email") == doc.get("email") for existing in self.storage.values()):
            raise ValidationError("User already exists")
        self.storage[doc["_id"]] = dict(doc)

    def find_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        doc = self.storage.get(user_id)
        return dict(doc) if doc else None

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        for doc in self.storage.values():
            if doc.get("email") == email:
                return dict(doc)
        return None

    def find_many(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        return {uid: dict(self.storage[uid]) for uid in set(user_ids) if uid in self.storage}

    def update(self, user_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        doc = self.storage.get(user_id)
        if doc is None:
            return None
        doc.update(patch)
        return dict(doc)

    def update_subjects(
        self, user_id: str, add: List[str], remove: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        doc = self.storage.get(user_id)
        if doc is None:
            return None
        subjects = list(doc.get("subjects") or [])
        for name in add:
            if name not in subjects:
                subjects.append(name)
        if remove:
            subjects = [name for name in subjects if name != remove]
        doc["subjects"] = subjects
        return dict(doc)


class TokenRepo:
    """Hashed bearer tokens issued at login."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection = collection if collection is not None else get_db().db[TOKENS]

    @storage_guard
    def insert(self, token_hash: str, user_id: str, expires_at: datetime) -> None:
        self.collection.insert_one(
            {"tokenHash": token_hash, "userId": user_id, "expiresAt": expires_at, "createdAt": datetime.utcnow()}
        )

    @storage_guard
    def find(self, token_hash: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"tokenHash": token_hash})

    @storage_guard
    def delete(self, token_hash: str) -> None:
        self.collection.delete_one({"tokenHash": token_hash})


class InMemoryTokenRepo(TokenRepo):
    def __init__(self) -> None:
        self.storage: Dict[str, Dict[str, Any]] = {}

    def insert(self, token_hash: str, user_id: str, expires_at: datetime) -> None:
        self.storage[token_hash] = {"tokenHash": token_hash, "userId": user_id, "expiresAt": expires_at}

    def find(self, token_hash: str) -> Optional[Dict[str, Any]]:
        doc = self.storage.get(token_hash)
        return dict(doc) if doc else None

    def delete(self, token_hash: str) -> None:
        self.storage.pop(token_hash, None)


def get_user_repo() -> UserRepo:
    """Return a repo bound to the shared Database instance."""

    return UserRepo()


def get_token_repo() -> TokenRepo:
    return TokenRepo()
