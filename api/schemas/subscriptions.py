"""Notification subscription schemas."""

from typing import Optional
from pydantic import BaseModel, Field, model_validator

from database.models.subscriptions import SubscriptionType


class SubscriptionEntry(BaseModel):
    """One "notify me about X" entry. The ``all`` type takes no value."""

    type: SubscriptionType
    value: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_value(self) -> "SubscriptionEntry":
        if self.type == SubscriptionType.ALL:
            self.value = ""
        elif not (self.value or "").strip():
            raise ValueError(f"Subscription of type {self.type.value} requires a value")
        else:
            self.value = self.value.strip()
        return self


class SubscriptionsUpdate(BaseModel):
    subscriptions: list[SubscriptionEntry] = Field(default_factory=list, max_length=200)


class JobSubscribersUpdate(BaseModel):
    user_ids: list[str] = Field(default_factory=list, max_length=500)
