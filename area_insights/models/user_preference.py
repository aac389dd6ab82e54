from sqlalchemy import Column, String, DateTime, Boolean, JSON
from sqlalchemy.sql import func
from area_insights.database import Base


class UserPreference(Base):
    __tablename__ = "user_preferences"

    user_id = Column(String(128), primary_key=True, index=True)
    interests = Column(JSON, nullable=False, default=list)
    age_group = Column(String(20), nullable=False, default="adult")
    activity_types = Column(JSON, nullable=False, default=list)
    preferred_environment = Column(String(20), nullable=False, default="mixed")
    price_range = Column(String(20), nullable=False, default="medium")
    time_preference = Column(String(20), nullable=False, default="flexible")
    group_size = Column(String(50), nullable=False, default="small")
    accessibility_needs = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<UserPreference(user_id={self.user_id}, age_group={self.age_group})>"
