"""
Quiz attempt answer and completion API endpoints

Both endpoints hold the per-attempt lock that socket autosave uses, so a
REST write and an autosave to the same attempt never interleave.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from datetime import timedelta
import logging

from app.api.deps import get_current_user, get_gateway
from app.database import get_db
from app.models import Quiz, QuizAttempt
from app.realtime.gateway import SessionGateway
from app.schemas.quiz import AnswerResult, AnswerSubmission, AttemptResponse
from app.services.auth_service import UserIdentity
from app.services.autosave_service import upsert_answer
from app.services.grading_service import evaluate, grade_answer_records, total_score
from app.utils.timeutils import ensure_aware, utcnow


router = APIRouter(prefix="/api/attempts", tags=["attempts"])
logger = logging.getLogger(__name__)


def _load_owned_attempt(db: Session, attempt_id: str, student_id: str) -> QuizAttempt:
    attempt = (
        db.query(QuizAttempt)
        .filter(
            QuizAttempt.id == attempt_id,
            QuizAttempt.student_id == student_id,
            QuizAttempt.status == "in-progress",
        )
        .first()
    )
    if not attempt:
        raise HTTPException(
            status_code=404, detail="Quiz attempt not found or already completed"
        )
    return attempt


def _load_quiz(db: Session, quiz_id: str) -> Quiz:
    quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
    if not quiz:
        raise HTTPException(status_code=404, detail="Quiz not found")
    return quiz


def _record_answer(
    db: Session,
    attempt_id: str,
    student_id: str,
    submission: AnswerSubmission
) -> AnswerResult:
    attempt = _load_owned_attempt(db, attempt_id, student_id)
    quiz = _load_quiz(db, attempt.quiz_id)

    if quiz.duration:
        deadline = ensure_aware(attempt.started_at) + timedelta(minutes=quiz.duration)
        if utcnow() >= deadline:
            attempt.status = "time-expired"
            db.commit()
            logger.info(f"Attempt {attempt_id} expired")
            raise HTTPException(status_code=400, detail="Quiz time has expired")

    question = quiz.find_question(submission.question_id)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")

    evaluation = evaluate(question, submission.answer)
    attempt.answers = upsert_answer(
        attempt.answers or [],
        submission.question_id,
        submission.answer,
        evaluation,
        submission.time_spent,
        utcnow(),
        accumulate_time=False,
    )
    attempt.score = total_score(attempt.answers)
    db.commit()

    logger.info(
        f"Answer submitted: attempt {attempt_id}, question {submission.question_id}, "
        f"correct={evaluation.is_correct}"
    )

    return AnswerResult(
        attempt_id=attempt.id,
        question_id=submission.question_id,
        is_correct=evaluation.is_correct,
        points=evaluation.points,
        score=attempt.score,
    )


def _complete(db: Session, attempt_id: str, student_id: str) -> QuizAttempt:
    attempt = _load_owned_attempt(db, attempt_id, student_id)
    quiz = _load_quiz(db, attempt.quiz_id)

    answers, score = grade_answer_records(quiz.questions or [], attempt.answers or [])
    completed_at = utcnow()

    attempt.answers = answers
    attempt.score = score
    attempt.total_points = quiz.total_points
    attempt.percentage = (
        round(score / attempt.total_points * 100) if attempt.total_points > 0 else 0
    )
    attempt.status = "completed"
    attempt.completed_at = completed_at
    attempt.time_spent = int((completed_at - ensure_aware(attempt.started_at)).total_seconds())
    db.commit()

    logger.info(
        f"Attempt completed: {attempt.id}, score: {score}/{attempt.total_points}"
    )
    return attempt


@router.post("/{attempt_id}/answers", response_model=AnswerResult)
async def submit_answer(
    attempt_id: str,
    submission: AnswerSubmission,
    user: UserIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: SessionGateway = Depends(get_gateway),
):
    """
    Submit an answer for one question of an in-progress attempt

    - Graded with the same evaluator as socket autosave
    - Replaces any earlier answer to the question, including its time spent
    - Expires the attempt when the quiz duration has elapsed
    """

    async with gateway.autosave.locks.hold(str(attempt_id)):
        return await run_in_threadpool(
            _record_answer, db, attempt_id, user.user_id, submission
        )


@router.post("/{attempt_id}/complete", response_model=AttemptResponse)
async def complete_attempt(
    attempt_id: str,
    user: UserIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: SessionGateway = Depends(get_gateway),
):
    """
    Complete an attempt

    Every stored answer is re-graded against the current quiz, so answers
    saved out-of-band are never trusted as-is. Supervisors get a
    `student_progress` event with the final score.
    """

    async with gateway.autosave.locks.hold(str(attempt_id)):
        attempt = await run_in_threadpool(_complete, db, attempt_id, user.user_id)

    await gateway.dispatcher.to_quiz_supervisors(
        attempt.quiz_id,
        "student_progress",
        {
            "studentId": user.user_id,
            "quizId": attempt.quiz_id,
            "progress": {
                "completed": True,
                "score": attempt.score,
                "percentage": attempt.percentage,
            },
            "timestamp": attempt.completed_at.isoformat(),
        },
    )

    return AttemptResponse.model_validate(attempt)
