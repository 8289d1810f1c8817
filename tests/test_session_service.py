import random
import threading
import time

import pytest
from fastapi import HTTPException

from companion.core.errors import StorageError
from companion.db.results_repo import InMemoryResultRepo
from companion.db.subjects_repo import InMemorySubjectRepo
from companion.schemas.session import SessionStartRequest, SessionStatus
from companion.services import session_service
from companion.services.session_service import QuizSession, SessionManager, time_limit_for


class FlakyResultRepo(InMemoryResultRepo):
    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    def insert(self, doc):
        if self.failures:
            self.failures -= 1
            raise StorageError()
        super().insert(doc)


@pytest.fixture
def manager(clock):
    return SessionManager(clock=clock, use_timers=False)


@pytest.fixture
def subject_repo(subject_doc):
    return InMemorySubjectRepo([subject_doc])


def _start(manager, subject_repo, result_repo, **overrides):
    request = SessionStartRequest(subject="Python", exam="quiz1", limit=10, **overrides)
    return manager.create("usr_1", request, subject_repo=subject_repo, result_repo=result_repo, rng=random.Random(7))


@pytest.mark.parametrize("count,seconds", [(10, 1200), (20, 1800), (30, 2700), (40, 3600), (50, 5400), (15, 1200)])
def test_time_limit_table(count, seconds):
    assert time_limit_for(count) == seconds


def test_start_requires_questions(clock):
    session = QuizSession("usr_1", "Python", [], on_finish=lambda payload: None, clock=clock)
    with pytest.raises(HTTPException) as exc:
        session.start()
    assert exc.value.status_code == 400
    assert session.status == SessionStatus.not_started


def test_answer_and_finish_scores_once(manager, subject_repo, clock):
    results = InMemoryResultRepo()
    session = _start(manager, subject_repo, results)
    assert session.status == SessionStatus.in_progress
    assert len(session.questions) == 10

    manager.answer(session.id, "usr_1", 0, "A")
    manager.answer(session.id, "usr_1", 1, "B")
    clock.advance(seconds=95)

    first = manager.finish(session.id, "usr_1")
    second = manager.finish(session.id, "usr_1")

    assert first.id == second.id
    assert len(results.storage) == 1
    assert first.score == 1
    assert first.total_questions == 10
    assert first.time_taken == 95
    assert [q.status for q in first.questions].count("not_attempted") == 8


def test_timer_expiry_and_explicit_submit_produce_one_result(manager, subject_repo, clock):
    results = InMemoryResultRepo()
    session = _start(manager, subject_repo, results)
    manager.answer(session.id, "usr_1", 3, "A")

    clock.advance(minutes=25)
    expired = session.expire()
    submitted = manager.finish(session.id, "usr_1")

    assert expired.id == submitted.id
    assert len(results.storage) == 1
    assert expired.time_taken == 20 * 60


def test_lazy_expiry_blocks_late_answers(manager, subject_repo, clock):
    results = InMemoryResultRepo()
    session = _start(manager, subject_repo, results)
    clock.advance(minutes=21)

    with pytest.raises(HTTPException) as exc:
        manager.answer(session.id, "usr_1", 0, "A")
    assert exc.value.status_code == 400
    assert session.status == SessionStatus.finished
    assert len(results.storage) == 1


def test_practice_mode_has_no_deadline(manager, subject_repo, clock):
    session = _start(manager, subject_repo, InMemoryResultRepo(), mode="practice")
    clock.advance(hours=3)
    manager.answer(session.id, "usr_1", 0, "A")
    view = session.view()
    assert view.time_limit_seconds is None
    assert view.remaining_seconds is None
    assert view.answers == {0: "A"}


def test_abandoned_sessions_are_pruned(manager, subject_repo, clock):
    results = InMemoryResultRepo()
    abandoned = _start(manager, subject_repo, results, mode="practice")
    recent = _start(manager, subject_repo, results, mode="practice")

    clock.advance(hours=20)
    manager.answer(recent.id, "usr_1", 0, "A")
    clock.advance(hours=5)
    _start(manager, subject_repo, results)

    with pytest.raises(HTTPException) as exc:
        manager.get(abandoned.id, "usr_1")
    assert exc.value.status_code == 404
    assert manager.get(recent.id, "usr_1").status == SessionStatus.in_progress
    assert results.storage == {}


def test_finished_sessions_are_pruned_after_an_hour(manager, subject_repo, clock):
    session = _start(manager, subject_repo, InMemoryResultRepo())
    manager.finish(session.id, "usr_1")

    clock.advance(minutes=30)
    _start(manager, subject_repo, InMemoryResultRepo())
    assert manager.get(session.id, "usr_1").status == SessionStatus.finished

    clock.advance(minutes=31)
    _start(manager, subject_repo, InMemoryResultRepo())
    with pytest.raises(HTTPException):
        manager.get(session.id, "usr_1")


def test_storage_failure_keeps_session_retryable(manager, subject_repo):
    results = FlakyResultRepo(failures=1)
    session = _start(manager, subject_repo, results)

    with pytest.raises(HTTPException) as exc:
        manager.finish(session.id, "usr_1")
    assert exc.value.status_code == 500
    assert session.status == SessionStatus.in_progress

    result = manager.finish(session.id, "usr_1")
    assert session.status == SessionStatus.finished
    assert list(results.storage) == [result.id]


def test_other_users_cannot_touch_session(manager, subject_repo):
    session = _start(manager, subject_repo, InMemoryResultRepo())
    with pytest.raises(HTTPException) as exc:
        manager.get(session.id, "usr_2")
    assert exc.value.status_code == 403
    with pytest.raises(HTTPException) as missing:
        manager.get("ses_missing", "usr_1")
    assert missing.value.status_code == 404


def test_answer_index_out_of_range(manager, subject_repo):
    session = _start(manager, subject_repo, InMemoryResultRepo())
    with pytest.raises(HTTPException) as exc:
        manager.answer(session.id, "usr_1", 10, "A")
    assert exc.value.status_code == 400


def test_view_hides_answer_key(manager, subject_repo):
    session = _start(manager, subject_repo, InMemoryResultRepo())
    payload = session.view().model_dump(by_alias=True)
    first = payload["questions"][0]
    assert "correctOption" not in first
    assert "explanation" not in first
    assert payload["remainingSeconds"] == 20 * 60


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()


def test_timer_auto_submits_once(subject_repo, monkeypatch):
    monkeypatch.setattr(session_service, "TIME_LIMITS", {})
    monkeypatch.setattr(session_service, "DEFAULT_TIME_LIMIT", 1)
    manager = SessionManager()
    results = InMemoryResultRepo()
    session = _start(manager, subject_repo, results)
    manager.answer(session.id, "usr_1", 0, "A")
    try:
        assert _wait_for(lambda: session.status == SessionStatus.finished)
        assert len(results.storage) == 1
        assert session.result.score == 1

        submitted = manager.finish(session.id, "usr_1")
        assert submitted.id == session.result.id
        assert len(results.storage) == 1
        assert session.id not in manager._timers
    finally:
        manager.shutdown()


def test_explicit_finish_cancels_timer(subject_repo):
    manager = SessionManager()
    session = _start(manager, subject_repo, InMemoryResultRepo())
    timer = manager._timers[session.id]

    manager.finish(session.id, "usr_1")
    assert session.id not in manager._timers
    assert timer.finished.is_set()


def test_shutdown_cancels_pending_timers(subject_repo):
    manager = SessionManager()
    first = _start(manager, subject_repo, InMemoryResultRepo())
    second = _start(manager, subject_repo, InMemoryResultRepo())
    timers = [manager._timers[first.id], manager._timers[second.id]]

    manager.shutdown()
    assert manager._timers == {}
    assert all(timer.finished.is_set() for timer in timers)
    assert first.status == SessionStatus.in_progress


@pytest.mark.parametrize("attempt", range(10))
def test_concurrent_submit_and_timeout_store_one_result(manager, subject_repo, clock, attempt):
    results = InMemoryResultRepo()
    session = _start(manager, subject_repo, results)
    clock.advance(minutes=20)
    barrier = threading.Barrier(2)
    outcomes = []

    def submit():
        barrier.wait()
        outcomes.append(manager.finish(session.id, "usr_1"))

    def timeout():
        barrier.wait()
        manager._on_timeout(session.id)

    threads = [threading.Thread(target=submit), threading.Thread(target=timeout)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert len(results.storage) == 1
    assert [result.id for result in outcomes] == list(results.storage)
    assert outcomes[0].time_taken == 20 * 60
