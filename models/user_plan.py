from sqlalchemy import Column, String, DateTime, Boolean
from sqlalchemy.sql import func
from db.base import Base

class UserPlan(Base):
    __tablename__ = "user_plans"

    user_id = Column(String(128), primary_key=True)
    user_email = Column(String(255), nullable=True)
    plan_id = Column(String(32), nullable=False, default="free")  # 'free', 'standard', 'premium'
    billing = Column(String(16), nullable=False, default="monthly")
    active = Column(Boolean, nullable=False, default=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
