from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.collection import Collection

from companion.db.session import RESULTS, get_db, storage_guard


class ResultRepo:
    """Mongo-backed repository for quiz result documents."""

    def __init__(self, collection: Optional[Collection] = None) -> None:
        self.collection = collection if collection is not None else get_db().db[RESULTS]

    @storage_guard
    def insert(self, doc: Dict[str, Any]) -> None:
        self.collection.insert_one(doc)

    @storage_guard
    def find_by_id(self, result_id: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"_id": result_id})

    @storage_guard
    def find_for_user(
        self,
        user_id: str,
        subject: Optional[str] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        """Results of one user, newest first."""

        query: Dict[str, Any] = {"userId": user_id}
        if subject:
            query["subject"] = subject
        cursor = self.collection.find(query).sort([("createdAt", DESCENDING)])
        if skip:
            cursor = cursor.skip(max(0, skip))
        if limit:
            cursor = cursor.limit(max(0, limit))
        return list(cursor)

    @storage_guard
    def set_analysis(self, result_id: str, analysis: Dict[str, Any], updated_at) -> bool:
        res = self.collection.update_one(
            {"_id": result_id}, {"$set": {"aiAnalysis": analysis, "updatedAt": updated_at}}
        )
        return res.matched_count > 0

    @storage_guard
    def best_scores(self, subject: Optional[str] = None) -> List[Dict[str, Any]]:
        """Max score per (user, subject, term, exam) combination."""

        match: Dict[str, Any] = {}
        if subject:
            match["subject"] = subject
        pipeline: List[Dict[str, Any]] = [
            {"$match": match},
            {
                "$group": {
                    "_id": {"userId": "$userId", "subject": "$subject", "term": "$term", "exam": "$exam"},
                    "maxScore": {"$max": "$score"},
                }
            },
            {
                "$project": {
                    "_id": 0,
                    "userId": "$_id.userId",
                    "subject": "$_id.subject",
                    "term": "$_id.term",
                    "exam": "$_id.exam",
                    "maxScore": 1,
                }
            },
        ]
        return list(self.collection.aggregate(pipeline))

    @storage_guard
    def subject_totals(self, user_id: str) -> List[Dict[str, Any]]:
        """Summed score and question count per subject for one user."""

        pipeline: List[Dict[str, Any]] = [
            {"$match": {"userId": user_id}},
            {
                "$group": {
                    "_id": "$subject",
                    "totalScore": {"$sum": "$score"},
                    "totalQuestions": {"$sum": "$totalQuestions"},
                    "quizzesTaken": {"$sum": 1},
                }
            },
            {"$project": {"_id": 0, "subject": "$_id", "totalScore": 1, "totalQuestions": 1, "quizzesTaken": 1}},
        ]
        return list(self.collection.aggregate(pipeline))


class InMemoryResultRepo(ResultRepo):
    """Simple in-memory repo for unit tests."""

    def __init__(self) -> None:
        self.storage: Dict[str, Dict[str, Any]] = {}

    def insert(self, doc: Dict[str, Any]) -> None:
        self.storage[doc["_id"]] = dict(doc)

    def find_by_id(self, result_id: str) -> Optional[Dict[str, Any]]:
        doc = self.storage.get(result_id)
        return dict(doc) if doc else None

    def find_for_user(
        self,
        user_id: str,
        subject: Optional[str] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        docs = [
            dict(doc)
            for doc in self.storage.values()
            if doc.get("userId") == user_id and (not subject or doc.get("subject") == subject)
        ]
        docs.sort(key=lambda d: d["createdAt"], reverse=True)
        if skip:
            docs = docs[skip:]
        if limit:
            docs = docs[:limit]
        return docs

    def set_analysis(self, result_id: str, analysis: Dict[str, Any], updated_at) -> bool:
        doc = self.storage.get(result_id)
        if doc is None:
            return False
        doc["aiAnalysis"] = analysis
        doc["updatedAt"] = updated_at
        return True

    def best_scores(self, subject: Optional[str] = None) -> List[Dict[str, Any]]:
        best: Dict[tuple, int] = {}
        for doc in self.storage.values():
            if subject and doc.get("subject") != subject:
                continue
            key = (doc.get("userId"), doc.get("subject"), doc.get("term"), doc.get("exam"))
            best[key] = max(best.get(key, doc["score"]), doc["score"])
        return [
            {"userId": user_id, "subject": subj, "term": term, "exam": exam, "maxScore": score}
            for (user_id, subj, term, exam), score in best.items()
        ]

    def subject_totals(self, user_id: str) -> List[Dict[str, Any]]:
        totals: Dict[str, Dict[str, Any]] = {}
        for doc in self.storage.values():
            if doc.get("userId") != user_id:
                continue
            row = totals.setdefault(
                doc["subject"],
                {"subject": doc["subject"], "totalScore": 0, "totalQuestions": 0, "quizzesTaken": 0},
            )
            row["totalScore"] += doc.get("score", 0)
            row["totalQuestions"] += doc.get("totalQuestions", 0)
            row["quizzesTaken"] += 1
        return list(totals.values())


def get_result_repo() -> ResultRepo:
    """Return a repo bound to the shared Database instance."""

    return ResultRepo()
