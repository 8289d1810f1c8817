"""
Server-side quiz sessions.

A session walks ``not_started -> in_progress -> finished``. Finishing grades
the recorded answers and hands one ``QuizResultCreate`` to the persistence
callback; a later finish returns the stored result instead of scoring again.
Exam-mode sessions carry a deadline enforced by a background timer and
re-checked on every access.
"""

import logging
import random
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from fastapi import HTTPException

from companion.core.errors import ForbiddenError, InvalidSession, NotFoundError, ValidationError
from companion.db.results_repo import ResultRepo
from companion.db.subjects_repo import SubjectRepo
from companion.schemas.question import Question, QuestionPublicView
from companion.schemas.result import QuizResult, QuizResultCreate, UserAnswer
from companion.schemas.session import SessionMode, SessionStartRequest, SessionStatus, SessionView
from companion.services import question_service, result_service
from companion.services.grading_service import grade_answers, is_blank

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

TIME_LIMITS = {10: 20 * 60, 20: 30 * 60, 30: 45 * 60, 40: 60 * 60, 50: 90 * 60}
DEFAULT_TIME_LIMIT = 20 * 60
FINISHED_RETENTION = timedelta(hours=1)
# abandoned sessions (practice mode, failed auto-submit) are dropped after this
IDLE_RETENTION = timedelta(hours=24)


def time_limit_for(question_count: int) -> int:
    """Exam countdown in seconds for a quiz of ``question_count`` questions."""

    return TIME_LIMITS.get(question_count, DEFAULT_TIME_LIMIT)


class QuizSession:
    def __init__(
        self,
        user_id: str,
        subject: str,
        questions: List[Question],
        on_finish: Callable[[QuizResultCreate], QuizResult],
        exam: Optional[str] = None,
        term: Optional[str] = None,
        mode: SessionMode = SessionMode.exam,
        clock: Clock = datetime.utcnow,
    ) -> None:
        self.id = f"ses_{uuid.uuid4()}"
        self.user_id = user_id
        self.subject = subject
        self.exam = exam
        self.term = term
        self.questions = list(questions)
        self.mode = SessionMode(mode)
        self.status = SessionStatus.not_started
        self.current_index = 0
        self.answers: Dict[int, UserAnswer] = {}
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None
        self.deadline: Optional[datetime] = None
        self.last_activity: Optional[datetime] = None
        self.result: Optional[QuizResult] = None
        self._on_finish = on_finish
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def time_limit_seconds(self) -> Optional[int]:
        if self.mode != SessionMode.exam:
            return None
        return time_limit_for(len(self.questions))

    def start(self) -> None:
        with self._lock:
            if self.status != SessionStatus.not_started:
                raise InvalidSession("Quiz session already started")
            if not self.subject:
                raise InvalidSession("Quiz session requires a subject")
            if not self.questions:
                raise InvalidSession("Quiz session requires at least one question")
            self.started_at = self._clock()
            if self.time_limit_seconds is not None:
                self.deadline = self.started_at + timedelta(seconds=self.time_limit_seconds)
            self.status = SessionStatus.in_progress
            self.last_activity = self.started_at

    def answer(self, index: int, answer: UserAnswer) -> None:
        with self._lock:
            self.expire_if_due()
            if self.status != SessionStatus.in_progress:
                raise InvalidSession("Quiz session is not in progress")
            if not 0 <= index < len(self.questions):
                raise ValidationError(f"Question index {index} out of range")
            if is_blank(answer):
                self.answers.pop(index, None)
            else:
                self.answers[index] = answer
            self.current_index = index
            self.last_activity = self._clock()

    def finish(self) -> QuizResult:
        with self._lock:
            return self._finish(self._clock())

    def expire(self) -> Optional[QuizResult]:
        """Timer path: finish at the deadline with whatever was answered."""

        with self._lock:
            if self.status != SessionStatus.in_progress or self.deadline is None:
                return self.result
            return self._finish(min(self._clock(), self.deadline))

    def expire_if_due(self) -> bool:
        with self._lock:
            if self.status == SessionStatus.in_progress and self.deadline and self._clock() >= self.deadline:
                self.expire()
                return True
            return False

    def remaining_seconds(self) -> Optional[int]:
        if self.deadline is None:
            return None
        if self.status == SessionStatus.finished:
            return 0
        return max(0, int((self.deadline - self._clock()).total_seconds()))

    def _finish(self, end_time: datetime) -> QuizResult:
        if self.status == SessionStatus.finished and self.result is not None:
            return self.result
        if self.status != SessionStatus.in_progress:
            raise InvalidSession("Quiz session has not started")
        graded, score = grade_answers(self.questions, self.answers)
        payload = QuizResultCreate(
            user_id=self.user_id,
            subject=self.subject,
            term=self.term,
            exam=self.exam,
            questions=graded,
            start_time=self.started_at,
            end_time=end_time,
            time_taken=int((end_time - self.started_at).total_seconds()),
            score=score,
            total_questions=len(self.questions),
        )
        # a failed write raises here and leaves the session in progress
        self.result = self._on_finish(payload)
        self.ended_at = end_time
        self.last_activity = self._clock()
        self.status = SessionStatus.finished
        return self.result

    def view(self) -> SessionView:
        with self._lock:
            return SessionView(
                id=self.id,
                status=self.status,
                mode=self.mode,
                subject=self.subject,
                exam=self.exam,
                term=self.term,
                current_index=self.current_index,
                total_questions=len(self.questions),
                questions=[QuestionPublicView.model_validate(q.model_dump()) for q in self.questions],
                answers=dict(self.answers),
                started_at=self.started_at,
                time_limit_seconds=self.time_limit_seconds,
                remaining_seconds=self.remaining_seconds(),
                result_id=self.result.id if self.result else None,
            )


class SessionManager:
    """In-process registry of running sessions, one owner per session."""

    def __init__(self, clock: Clock = datetime.utcnow, use_timers: bool = True) -> None:
        self._sessions: Dict[str, QuizSession] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._use_timers = use_timers

    def create(
        self,
        user_id: str,
        request: SessionStartRequest,
        subject_repo: Optional[SubjectRepo] = None,
        result_repo: Optional[ResultRepo] = None,
        rng: Optional[random.Random] = None,
    ) -> QuizSession:
        subject = question_service.load_subject(request.subject, repo=subject_repo)
        pool = question_service.paper_for(subject, request.exam)
        if request.term:
            pool = [q for q in pool if q.term == request.term]
        questions = question_service.select_questions(pool, request.limit, topic=request.topic, rng=rng)

        session = QuizSession(
            user_id=user_id,
            subject=request.subject,
            questions=questions,
            on_finish=lambda payload: result_service.save_result(payload, user_id, repo=result_repo),
            exam=request.exam,
            term=request.term,
            mode=request.mode,
            clock=self._clock,
        )
        session.start()

        with self._lock:
            self._prune()
            self._sessions[session.id] = session
            if self._use_timers and session.time_limit_seconds is not None:
                timer = threading.Timer(session.time_limit_seconds, self._on_timeout, args=(session.id,))
                timer.daemon = True
                self._timers[session.id] = timer
                timer.start()
        logger.info(
            "Started %s session %s for user %s (%s %s, %d questions)",
            session.mode.value,
            session.id,
            user_id,
            request.subject,
            request.exam,
            len(questions),
        )
        return session

    def get(self, session_id: str, user_id: str) -> QuizSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Quiz session not found")
        if session.user_id != user_id:
            raise ForbiddenError()
        session.expire_if_due()
        return session

    def answer(self, session_id: str, user_id: str, index: int, answer: UserAnswer) -> QuizSession:
        session = self.get(session_id, user_id)
        session.answer(index, answer)
        return session

    def finish(self, session_id: str, user_id: str) -> QuizResult:
        session = self.get(session_id, user_id)
        result = session.finish()
        self._cancel_timer(session_id)
        return result

    def _on_timeout(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            self._timers.pop(session_id, None)
        if session is None:
            return
        try:
            session.expire()
            logger.info("Session %s auto-submitted on timeout", session_id)
        except HTTPException as exc:
            # the next access retries through expire_if_due
            logger.error("Auto-submit of session %s failed: %s", session_id, exc.detail)

    def _cancel_timer(self, session_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(session_id, None)
        if timer is not None:
            timer.cancel()

    def _prune(self) -> None:
        """Drop finished sessions after a while and abandoned ones after a day; caller holds the lock."""

        now = self._clock()
        stale = []
        for sid, session in self._sessions.items():
            retention = FINISHED_RETENTION if session.status == SessionStatus.finished else IDLE_RETENTION
            if session.last_activity is None or session.last_activity < now - retention:
                stale.append(sid)
        for sid in stale:
            del self._sessions[sid]
            timer = self._timers.pop(sid, None)
            if timer is not None:
                timer.cancel()
        if stale:
            logger.info("Pruned %d idle quiz sessions", len(stale))

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()


session_manager = SessionManager()


def get_session_manager() -> SessionManager:
    return session_manager
