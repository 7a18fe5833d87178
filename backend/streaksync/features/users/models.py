"""
User-related models.

Models:
- User: Application account. Linked to Strava through AthleteLink.
"""

from datetime import datetime
import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship

from streaksync.models.base import Base


ROLE_MEMBER = "member"
ROLE_ADMIN = "admin"


class User(Base):
    """
    Application user.

    Sessions are issued by another service; here we only need the id
    the bearer token refers to and the role it grants.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, index=True, nullable=True)

    # Profile
    display_name = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_MEMBER)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    athlete_link = relationship(
        "AthleteLink",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self):
        return f"<User {self.id} ({self.display_name})>"
