"""
Quiz model - quiz document with embedded questions
"""
from sqlalchemy import Column, String, Boolean, Integer, DateTime, ForeignKey
from app.database import Base, JSONDocument
from app.utils.timeutils import utcnow
import uuid


class Quiz(Base):
    """
    Quizzes table - questions are stored as an embedded JSON list

    Question document shape:
        {"id", "answer_type", "options": [{"id", "is_correct"}],
         "correct_answer", "correct_boolean", "points"}
    """
    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(100), nullable=False)
    created_by = Column(String(36), ForeignKey("users.id"))
    questions = Column(JSONDocument, nullable=False, default=list)
    duration = Column(Integer)  # minutes, None = untimed
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    def find_question(self, question_id: str):
        """Return the question document with the given id, or None"""
        for question in self.questions or []:
            if isinstance(question, dict) and str(question.get("id")) == str(question_id):
                return question
        return None

    @property
    def total_points(self) -> float:
        return sum(q.get("points", 1) or 0 for q in self.questions or [] if isinstance(q, dict))

    def __repr__(self):
        return f"<Quiz(id={self.id}, title={self.title})>"
