from sqlalchemy import Column, Integer, String, DateTime, DECIMAL, JSON
from sqlalchemy.sql import func
from db.base import Base

PAYMENT_STATUSES = ("pending", "paid", "failed", "cancelled")

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    tran_id = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(String(128), nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    user_name = Column(String(255), nullable=True)
    plan_id = Column(String(32), nullable=False)  # 'standard', 'premium'
    billing = Column(String(16), nullable=False)  # 'monthly', 'yearly'
    gateway = Column(String(32), nullable=False)  # 'stripe', 'sslcommerz'
    amount_usd = Column(DECIMAL(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="USD")
    status = Column(String(16), nullable=False, default="pending", index=True)  # see PAYMENT_STATUSES
    gateway_reference = Column(String(255), nullable=True)  # Stripe PaymentIntent id or SSLCommerz val_id
    raw_response = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
