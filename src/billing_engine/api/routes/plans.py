"""Plan entitlement endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from billing_engine.api.dependencies import DbSession, PlanService, Repository
from billing_engine.api.schemas import (
    ClientCapacityResponse,
    EntitlementResponse,
    ErrorResponse,
    PlanResponse,
)
from billing_engine.exceptions import EntityNotFoundError
from billing_engine.models import User
from billing_engine.repository import BillingRepository
from billing_engine.services.plan import CurrentPlan, describe_plan

router = APIRouter(tags=["plans"])


def plan_response(plan: CurrentPlan) -> PlanResponse:
    return PlanResponse(
        plan_tier=plan.plan_tier.value,
        effective_tier=plan.effective_tier.value,
        is_trial_active=plan.is_trial_active,
        is_in_grace_period=plan.is_in_grace_period,
        trial_ends_at=plan.trial_ends_at,
        grace_ends_at=plan.grace_ends_at,
        subscription_cancel_at=plan.subscription_cancel_at,
        subscription_status=plan.subscription_status,
    )


async def _load_user(repository: BillingRepository, user_id: UUID) -> User:
    user = await repository.get_user(user_id)
    if user is None:
        raise EntityNotFoundError("User", user_id)
    return user


@router.post(
    "/users/{user_id}/plan/ensure",
    response_model=EntitlementResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def ensure_plan(
    db: DbSession,
    repository: Repository,
    service: PlanService,
    user_id: Annotated[UUID, Path()],
) -> EntitlementResponse:
    """Reconcile trial and subscription state for a user."""
    user = await _load_user(repository, user_id)
    result = await service.ensure_trial_state(user)
    await db.commit()

    subject = result.plan_subject
    return EntitlementResponse(
        user_id=result.user.user_id,
        plan_owner_id=result.plan_owner.user_id if result.plan_owner else None,
        company_id=result.company.company_id if result.company else None,
        plan_tier=subject.plan_tier,
        pro_trial_ends_at=subject.pro_trial_ends_at,
        pro_trial_reminder_sent=subject.pro_trial_reminder_sent,
        subscription_check_error=result.subscription_check_error,
        changed=result.changed,
        plan=plan_response(describe_plan(result.user, result.plan_owner)),
    )


@router.get(
    "/users/{user_id}/plan",
    response_model=PlanResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_plan(
    repository: Repository,
    service: PlanService,
    user_id: Annotated[UUID, Path()],
) -> PlanResponse:
    """Current plan with live subscription details."""
    user = await _load_user(repository, user_id)
    return plan_response(await service.get_current_plan(user))


@router.post(
    "/users/{user_id}/plan/trial",
    response_model=PlanResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def start_trial(
    db: DbSession,
    repository: Repository,
    service: PlanService,
    user_id: Annotated[UUID, Path()],
) -> PlanResponse:
    """Grant the one-time PRO trial to the user's plan subject."""
    user = await _load_user(repository, user_id)
    subject = await service.start_trial(user)
    await db.commit()
    return plan_response(describe_plan(subject))


@router.get(
    "/companies/{company_id}/clients/capacity",
    response_model=ClientCapacityResponse,
    responses={404: {"model": ErrorResponse}},
)
async def client_capacity(
    repository: Repository,
    service: PlanService,
    company_id: Annotated[UUID, Path()],
    user_id: Annotated[UUID, Query()],
) -> ClientCapacityResponse:
    """Whether the user's company can add another client."""
    user = await _load_user(repository, user_id)
    capacity = await service.client_capacity(user, company_id)
    return ClientCapacityResponse.model_validate(capacity)
