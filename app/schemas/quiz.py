"""
Pydantic schemas for quiz attempt requests and responses
"""
from pydantic import BaseModel, Field
from typing import Any, List, Optional
from datetime import datetime


class AnswerSubmission(BaseModel):
    """Schema for submitting one answer over REST"""
    question_id: str = Field(..., alias="questionId", min_length=1)
    answer: Any = None
    time_spent: float = Field(0, alias="timeSpent", ge=0)

    class Config:
        populate_by_name = True


class AnswerResult(BaseModel):
    """Grading of a single submitted answer"""
    attempt_id: str
    question_id: str
    is_correct: bool
    points: float
    score: float


class AnswerRecord(BaseModel):
    """Stored answer inside an attempt"""
    question_id: str
    answer: Any
    is_correct: bool
    points: float
    time_spent: float
    answered_at: Optional[str] = None


class AttemptResponse(BaseModel):
    """Attempt state after completion"""
    id: str
    quiz_id: str
    student_id: str
    status: str
    score: float
    total_points: float
    percentage: float
    answers: List[AnswerRecord]
    completed_at: Optional[datetime] = None
    time_spent: int

    class Config:
        from_attributes = True
