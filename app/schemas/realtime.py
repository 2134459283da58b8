"""
Pydantic schemas for Socket.IO message payloads and the presence endpoints
"""
from pydantic import BaseModel, Field
from typing import Any, List, Optional


class SaveAnswerPayload(BaseModel):
    """Inbound `save_answer` autosave message"""
    attempt_id: str = Field(..., alias="attemptId", min_length=1)
    question_id: str = Field(..., alias="questionId", min_length=1)
    answer: Any = None  # str | list[str] | bool, normalised by the grader
    time_spent: Optional[float] = Field(0, alias="timeSpent", ge=0)

    class Config:
        populate_by_name = True


class QuizProgressPayload(BaseModel):
    """Inbound `quiz_progress` message"""
    quiz_id: str = Field(..., alias="quizId", min_length=1)
    progress: Any = None

    class Config:
        populate_by_name = True


class TypingPayload(BaseModel):
    """Inbound `typing_notification` message"""
    is_typing: bool = Field(False, alias="isTyping")

    class Config:
        populate_by_name = True


class PublicUser(BaseModel):
    id: str
    name: str
    role: str


class OnlineUsersResponse(BaseModel):
    """Presence snapshot for dashboards"""
    count: int
    users: List[PublicUser]


class AnnouncementRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=500)
    type: str = Field("info", pattern="^(info|warning|success|error)$")


class DisconnectResponse(BaseModel):
    user_id: str
    disconnected: bool
