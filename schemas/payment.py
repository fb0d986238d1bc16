from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

class CheckoutRequest(BaseModel):
    """Purchase request sent by the checkout page.

    Plan and billing are plain strings so an unknown value reaches the
    pricing lookup and is rejected there with a message naming the field.
    """
    model_config = ConfigDict(populate_by_name=True)

    plan_id: Optional[str] = Field(default=None, alias="planId")
    billing: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    user_name: Optional[str] = Field(default=None, alias="userName")

class StripeIntentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_secret: str = Field(alias="clientSecret")
    payment_intent_id: str = Field(alias="paymentIntentId")
    amount: int  # minor units
    currency: str = "usd"

class SSLCommerzInitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "success"
    redirect_url: str = Field(alias="redirectUrl")
    session_key: str = Field(alias="sessionKey")

class PaymentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    tran_id: str = Field(alias="transactionId")
    plan_id: str = Field(alias="planId")
    billing: str
    gateway: str
    amount_usd: Decimal = Field(alias="amountUsd")
    currency: str
    status: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

class PlanPrice(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_id: str = Field(alias="planId")
    billing: str
    amount_usd: Decimal = Field(alias="amountUsd")
    amount_cents: int = Field(alias="amountCents")

class ConfirmationOutcome(BaseModel):
    """Result of applying one gateway confirmation, used for logging and tests."""
    tran_id: Optional[str] = None
    status: Optional[str] = None
    applied: bool = False
    plan_activated: bool = False
    detail: Optional[str] = None
