from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.collection import Collection

from companion.db.session import STUDY_GUIDES, get_db, storage_guard

SUMMARY_PROJECTION = {"aiResponse": 0, "questionsUsed": 0}


class StudyGuideRepo:
    """Mongo-backed repository for generated study guides."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection = collection if collection is not None else get_db().db[STUDY_GUIDES]

    @storage_guard
    def insert(self, doc: Dict[str, Any]) -> None:
        self.collection.insert_one(doc)

    @storage_guard
    def find_any(self, subject: str, exam: str) -> Optional[Dict[str, Any]]:
        """Any user's guide for the subject/exam pair, used to avoid regenerating."""

        return self.collection.find_one({"subject": subject, "exam": exam})

    @storage_guard
    def find_for_user(self, user_id: str, subject: str, exam: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"userId": user_id, "subject": subject, "exam": exam})

    @storage_guard
    def get(self, guide_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"_id": guide_id, "userId": user_id})

    @storage_guard
    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        cursor = self.collection.find({"userId": user_id}, SUMMARY_PROJECTION).sort([("createdAt", DESCENDING)])
        return list(cursor)

    @storage_guard
    def delete(self, guide_id: str, user_id: str) -> bool:
        res = self.collection.delete_one({"_id": guide_id, "userId": user_id})
        return res.deleted_count > 0


class InMemoryStudyGuideRepo(StudyGuideRepo):
    """Simple in-memory repo for unit tests."""

    def __init__(self) -> None:
        self.storage: Dict[str, Dict[str, Any]] = {}

    def insert(self, doc: Dict[str, Any]) -> None:
        self.storage[doc["_id"]] = dict(doc)

    def _first(self, **criteria: Any) -> Optional[Dict[str, Any]]:
        for doc in self.storage.values():
            if all(doc.get(key) == value for key, value in criteria.items()):
                return dict(doc)
        return None

    def find_any(self, subject: str, exam: str) -> Optional[Dict[str, Any]]:
        return self._first(subject=subject, exam=exam)

    def find_for_user(self, user_id: str, subject: str, exam: str) -> Optional[Dict[str, Any]]:
        return self._first(userId=user_id, subject=subject, exam=exam)

    def get(self, guide_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return self._first(_id=guide_id, userId=user_id)

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        docs = [
            {key: value for key, value in doc.items() if key not in SUMMARY_PROJECTION}
            for doc in self.storage.values()
            if doc.get("userId") == user_id
        ]
        docs.sort(key=lambda d: d["createdAt"], reverse=True)
        return docs

    def delete(self, guide_id: str, user_id: str) -> bool:
        doc = self.storage.get(guide_id)
        if doc is None or doc.get("userId") != user_id:
            return False
        del self.storage[guide_id]
        return True


def get_study_guide_repo() -> StudyGuideRepo:
    """Return a repo bound to the shared Database instance."""

    return StudyGuideRepo()
