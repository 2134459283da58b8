"""
QuizAttempt model - a student's run through a quiz
"""
from sqlalchemy import Column, String, Float, Integer, DateTime, ForeignKey
from app.database import Base, JSONDocument
from app.utils.timeutils import utcnow
import uuid


ATTEMPT_STATUSES = ("in-progress", "completed", "abandoned", "time-expired")


class QuizAttempt(Base):
    """
    Quiz attempts table - answers are an embedded JSON list, one record per question

    Answer record shape:
        {"question_id", "answer", "is_correct", "points", "time_spent", "answered_at"}
    """
    __tablename__ = "quiz_attempts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    quiz_id = Column(String(36), ForeignKey("quizzes.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="in-progress", index=True)
    answers = Column(JSONDocument, nullable=False, default=list)
    score = Column(Float, nullable=False, default=0)
    total_points = Column(Float, nullable=False, default=0)
    percentage = Column(Float, nullable=False, default=0)
    started_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True))
    time_spent = Column(Integer, default=0)  # seconds
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<QuizAttempt(id={self.id}, student_id={self.student_id}, score={self.score})>"
