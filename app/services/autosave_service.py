"""
Attempt autosave - persists in-progress answers arriving over the socket

Best effort: every failure is a silent drop from the client's point of view.
The client autosaves again on its next tick and the REST completion path
re-grades the whole attempt anyway.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.models import Quiz, QuizAttempt
from app.services.grading_service import Evaluation, evaluate, total_score
from app.utils.locks import KeyedLocks
from app.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutosaveResult:
    attempt_id: str
    question_id: str
    quiz_id: str
    student_id: str
    is_correct: bool
    points: float
    score: float

    def to_ack(self) -> Dict[str, Any]:
        """`answer_saved` payload for the submitting connection"""
        return {
            "attemptId": self.attempt_id,
            "questionId": self.question_id,
            "isCorrect": self.is_correct,
            "points": self.points,
            "score": self.score,
        }

    def to_progress(self) -> Dict[str, Any]:
        """`student_progress` payload for supervisors; never carries the answer itself"""
        return {
            "studentId": self.student_id,
            "quizId": self.quiz_id,
            "progress": {"questionId": self.question_id, "isCorrect": self.is_correct},
            "timestamp": utcnow().isoformat(),
        }


def upsert_answer(
    answers: List[Dict[str, Any]],
    question_id: str,
    answer: Any,
    evaluation: Evaluation,
    time_spent: float,
    answered_at: datetime,
    accumulate_time: bool = True
) -> List[Dict[str, Any]]:
    """
    Return a new answer list with the record for ``question_id`` replaced or appended

    At most one record per question. With ``accumulate_time`` the new
    ``time_spent`` is added to the stored one instead of replacing it.
    """
    updated = []
    found = False
    for record in answers:
        if str(record.get("question_id")) != str(question_id):
            updated.append(record)
            continue
        found = True
        previous_time = record.get("time_spent") or 0
        updated.append({
            **record,
            "answer": answer,
            "is_correct": evaluation.is_correct,
            "points": evaluation.points,
            "time_spent": previous_time + time_spent if accumulate_time else time_spent,
            "answered_at": answered_at.isoformat(),
        })

    if not found:
        updated.append({
            "question_id": str(question_id),
            "answer": answer,
            "is_correct": evaluation.is_correct,
            "points": evaluation.points,
            "time_spent": time_spent,
            "answered_at": answered_at.isoformat(),
        })
    return updated


class AutosaveService:
    """
    Load, check ownership and state, grade, upsert, rescore, save

    Saves for the same attempt are serialized through ``locks``; the REST
    attempt endpoints hold the same locks, so no writer of an attempt can
    lose another's update.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self.locks = KeyedLocks()

    async def autosave(
        self,
        student_id: str,
        attempt_id: str,
        question_id: str,
        answer: Any,
        time_spent: Optional[float] = 0
    ) -> Optional[AutosaveResult]:
        """
        Persist one in-progress answer

        Returns:
            AutosaveResult to acknowledge, or None when the save was dropped
        """
        async with self.locks.hold(str(attempt_id)):
            try:
                return await run_in_threadpool(
                    self._apply, student_id, attempt_id, question_id, answer, time_spent or 0
                )
            except SQLAlchemyError:
                logger.exception(f"Autosave failed for attempt {attempt_id}, question {question_id}")
                return None

    def _apply(
        self,
        student_id: str,
        attempt_id: str,
        question_id: str,
        answer: Any,
        time_spent: float
    ) -> Optional[AutosaveResult]:
        with self.session_factory() as db:
            attempt = db.get(QuizAttempt, str(attempt_id))
            if attempt is None:
                logger.info(f"Autosave dropped: attempt {attempt_id} not found")
                return None

            # Same outcome as "not found" so non-owners learn nothing
            if str(attempt.student_id) != str(student_id):
                logger.warning(f"Autosave dropped: user {student_id} does not own attempt {attempt_id}")
                return None

            if attempt.status != "in-progress":
                logger.info(f"Autosave dropped: attempt {attempt_id} is {attempt.status}")
                return None

            quiz = db.get(Quiz, attempt.quiz_id)
            if quiz is None:
                logger.info(f"Autosave dropped: quiz {attempt.quiz_id} not found")
                return None

            question = quiz.find_question(question_id)
            if question is None:
                logger.info(f"Autosave dropped: question {question_id} not in quiz {quiz.id}")
                return None

            evaluation = evaluate(question, answer)

            # Assign a new list so the JSON column is flagged dirty
            attempt.answers = upsert_answer(
                attempt.answers or [], question_id, answer, evaluation, time_spent, utcnow()
            )
            attempt.score = total_score(attempt.answers)
            db.commit()

            logger.info(
                f"Autosaved attempt {attempt_id} question {question_id}: "
                f"correct={evaluation.is_correct}, score={attempt.score}"
            )

            return AutosaveResult(
                attempt_id=str(attempt.id),
                question_id=str(question_id),
                quiz_id=str(quiz.id),
                student_id=str(attempt.student_id),
                is_correct=evaluation.is_correct,
                points=evaluation.points,
                score=attempt.score,
            )
