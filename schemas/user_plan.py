from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

class UserPlanCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    user_email: Optional[str] = Field(default=None, alias="userEmail")

class UserPlanResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    user_id: str = Field(alias="userId")
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    plan_id: str = Field(alias="planId")
    billing: str
    active: bool
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
