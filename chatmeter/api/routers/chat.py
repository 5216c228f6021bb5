"""Metered chat endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from chatmeter.api import schemas
from chatmeter.api.dependencies.auth import get_caller
from chatmeter.api.dependencies.services import get_gateway, get_registry
from chatmeter.services.gateway import ChatGateway
from chatmeter.services.registry import Caller, RegistryService

router = APIRouter(tags=["chat"])


@router.post("/chat", response_model=schemas.ChatResponse)
def chat(
    payload: schemas.ChatRequest,
    caller: Caller = Depends(get_caller),
    gateway: ChatGateway = Depends(get_gateway),
) -> schemas.ChatResponse:
    result = gateway.chat(caller, payload.message)
    return schemas.ChatResponse(
        reply=result.reply,
        usage=schemas.UsageSummary(
            period=result.period,
            used=result.used,
            limit=result.limit,
            remaining=result.remaining,
        ),
    )


@router.get("/usage", response_model=schemas.CallerUsageResponse)
def usage(
    caller: Caller = Depends(get_caller),
    registry: RegistryService = Depends(get_registry),
) -> schemas.CallerUsageResponse:
    period, used = registry.usage(caller.token)
    limit = caller.plan.monthly_limit
    return schemas.CallerUsageResponse(
        plan=caller.plan_name,
        price=caller.plan.price,
        period=period,
        used=used,
        limit=limit,
        remaining=max(0, limit - used),
    )


__all__ = ["router"]
