"""Administrative endpoints for the plan catalog and client tokens."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from chatmeter.api import schemas
from chatmeter.api.dependencies.auth import get_admin_secret
from chatmeter.api.dependencies.services import get_admin
from chatmeter.core.plans import Plan
from chatmeter.services.admin import AdminController, UserMutationResult

router = APIRouter(prefix="/admin", tags=["admin"])


def _plan_out(plan: Plan) -> schemas.PlanOut:
    return schemas.PlanOut(name=plan.name, monthly_messages=plan.monthly_limit, price=plan.price)


def _user_response(result: UserMutationResult) -> schemas.UserMutationResponse:
    return schemas.UserMutationResponse(
        op=result.op,
        persisted=result.persisted,
        token=result.token,
        plan=result.plan_name,
        used=result.used,
    )


@router.get("/plans", response_model=list[schemas.PlanOut])
def list_plans(
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> list[schemas.PlanOut]:
    return [_plan_out(plan) for plan in admin.list_plans(secret)]


@router.put("/plans/{name}", response_model=schemas.PlanMutationResponse)
def upsert_plan(
    name: str,
    payload: schemas.PlanPayload,
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> schemas.PlanMutationResponse:
    result = admin.mutate_plan(
        secret,
        "upsert",
        {"name": name, "monthly_limit": payload.monthly_messages, "price": payload.price},
    )
    return schemas.PlanMutationResponse(op="upsert", persisted=result.persisted, plan=_plan_out(result.plan))


@router.delete("/plans/{name}", response_model=schemas.PlanMutationResponse)
def remove_plan(
    name: str,
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> schemas.PlanMutationResponse:
    result = admin.mutate_plan(secret, "remove", {"name": name})
    return schemas.PlanMutationResponse(op="remove", persisted=result.persisted, plan=_plan_out(result.plan))


@router.get("/users", response_model=list[schemas.UserOut])
def list_users(
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> list[schemas.UserOut]:
    users = admin.list_users(secret)
    return [schemas.UserOut(token=token, plan=plan) for token, plan in sorted(users.items())]


@router.put("/users/{token}", response_model=schemas.UserMutationResponse)
def assign_user(
    token: str,
    payload: schemas.UserAssignPayload,
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> schemas.UserMutationResponse:
    return _user_response(admin.mutate_user(secret, "assign", {"token": token, "plan": payload.plan}))


@router.delete("/users/{token}", response_model=schemas.UserMutationResponse)
def remove_user(
    token: str,
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> schemas.UserMutationResponse:
    return _user_response(admin.mutate_user(secret, "remove", {"token": token}))


@router.post("/users/{token}/rename", response_model=schemas.UserMutationResponse)
def rename_user(
    token: str,
    payload: schemas.UserRenamePayload,
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> schemas.UserMutationResponse:
    result = admin.mutate_user(secret, "rename", {"token": token, "new_token": payload.new_token})
    return _user_response(result)


@router.get("/snapshot", response_model=schemas.SnapshotResponse)
def export_snapshot(
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> schemas.SnapshotResponse:
    return schemas.SnapshotResponse(**admin.snapshot(secret).to_dict())


@router.get("/usage", response_model=schemas.UsageReportResponse)
def usage_report(
    secret: str | None = Depends(get_admin_secret),
    admin: AdminController = Depends(get_admin),
) -> schemas.UsageReportResponse:
    period, usage = admin.usage_report(secret)
    return schemas.UsageReportResponse(period=period, usage=usage)


__all__ = ["router"]
