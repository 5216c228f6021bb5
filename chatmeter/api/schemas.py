"""Pydantic schemas for API requests and responses."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class ChatRequest(BaseModel):
    message: Any = None


class UsageSummary(BaseModel):
    period: str
    used: int
    limit: int
    remaining: int


class ChatResponse(BaseModel):
    reply: str
    usage: UsageSummary


class CallerUsageResponse(BaseModel):
    plan: str
    price: str
    period: str
    used: int
    limit: int
    remaining: int


class PlanPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    monthly_messages: StrictInt = Field(alias="monthlyMessages")
    price: str


class PlanOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    monthly_messages: int = Field(alias="monthlyMessages")
    price: str


class PlanMutationResponse(BaseModel):
    op: Literal["upsert", "remove"]
    persisted: bool
    plan: PlanOut


class UserAssignPayload(BaseModel):
    plan: str


class UserRenamePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_token: str = Field(alias="newToken")


class UserOut(BaseModel):
    token: str
    plan: str


class UserMutationResponse(BaseModel):
    op: Literal["assign", "remove", "rename"]
    persisted: bool
    token: str
    plan: str | None = None
    used: int | None = None


class SnapshotResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plans: dict[str, dict[str, Any]]
    users: dict[str, str]


class UsageReportResponse(BaseModel):
    period: str
    usage: dict[str, int]


class RootResponse(BaseModel):
    ok: bool
    app: str
    now: datetime


class HealthResponse(BaseModel):
    status: str
    durability: Literal["ok", "degraded"]
