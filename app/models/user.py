"""
User model - identity record resolved by the token authenticator
"""
from sqlalchemy import Column, String, Boolean, DateTime
from app.database import Base
from app.utils.timeutils import utcnow
import uuid


class User(Base):
    """
    Users table - only the fields the realtime gateway reads or writes
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True)
    role = Column(String(20), nullable=False, default="student")  # student | teacher | admin
    is_approved = Column(Boolean, default=False)
    is_online = Column(Boolean, default=False)
    last_seen = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)

    def to_public(self) -> dict:
        """Projection safe to broadcast to other users"""
        return {"id": self.id, "name": self.name, "role": self.role}

    def __repr__(self):
        return f"<User(id={self.id}, name={self.name}, role={self.role})>"
