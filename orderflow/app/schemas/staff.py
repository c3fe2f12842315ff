from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field


class StaffIn(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    identity_ref: str | None = Field(default=None, validation_alias=AliasChoices("identity_ref", "clerkId"))
    fcm_token: str | None = Field(default=None, validation_alias=AliasChoices("fcm_token", "fcmToken"))
    active: bool | None = None


class FcmTokenIn(BaseModel):
    email: str | None = None
    role: str | None = None
    fcmToken: str | None = None
