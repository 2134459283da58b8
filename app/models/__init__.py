"""
Database models package
"""
from app.models.user import User
from app.models.quiz import Quiz
from app.models.quiz_attempt import QuizAttempt

__all__ = ["User", "Quiz", "QuizAttempt"]
