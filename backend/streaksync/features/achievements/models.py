"""
Achievement models.

Models:
- Achievement: Static definition (threshold on one running stat)
- UserAchievement: Unlock record, unique per (user, achievement)
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from streaksync.models.base import Base


class Achievement(Base):
    """
    Achievement definition.

    `requirement_type` keeps the raw string as stored by the content admin;
    legacy spellings are resolved by the evaluator's alias table.
    """

    __tablename__ = "achievements"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    category = Column(String(50), nullable=True)
    requirement_type = Column(String(50), nullable=False)
    requirement_value = Column(Float, nullable=False)

    def __repr__(self):
        return f"<Achievement {self.id} {self.requirement_type}>={self.requirement_value}>"


class UserAchievement(Base):
    """Insert-only unlock record."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    achievement_id = Column(String(36), ForeignKey("achievements.id"), nullable=False)
    unlocked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    achievement = relationship("Achievement", lazy="joined")
