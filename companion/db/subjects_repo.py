from typing import Any, Dict, List, Optional

from pymongo.collection import Collection

from companion.db.session import SUBJECTS, get_db, storage_guard


class SubjectRepo:
    """Mongo-backed repository for subject documents (question bank)."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection = collection if collection is not None else get_db().db[SUBJECTS]

    @storage_guard
    def find_by_name(self, subject_name: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"subjectName": subject_name})

    @storage_guard
    def upsert(self, doc: Dict[str, Any]) -> None:
        body = {key: value for key, value in doc.items() if key != "_id"}
        self.collection.update_one({"subjectName": doc["subjectName"]}, {"$set": body}, upsert=True)


class InMemorySubjectRepo(SubjectRepo):
    """Simple in-memory repo for unit tests."""

    def __init__(self, docs: Optional[List[Dict[str, Any]]] = None) -> None:
        self.storage: Dict[str, Dict[str, Any]] = {}
        for doc in docs or []:
            self.upsert(doc)

    def find_by_name(self, subject_name: str) -> Optional[Dict[str, Any]]:
        doc = self.storage.get(subject_name)
        return dict(doc) if doc else None

    def upsert(self, doc: Dict[str, Any]) -> None:
        current = self.storage.setdefault(doc["subjectName"], {"_id": f"sub_{len(self.storage) + 1}"})
        current.update({key: value for key, value in doc.items() if key != "_id"})


def get_subject_repo() -> SubjectRepo:
    """Return a repo bound to the shared Database instance."""

    return SubjectRepo()
