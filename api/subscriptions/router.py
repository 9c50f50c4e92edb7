"""
Subscription and billing API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from auth import dependencies as auth_dependencies
from core.rate_limit import limiter
from core.responses import success

from . import schemas, service, webhooks

router = APIRouter()


@router.get("/subscriptions/plans")
async def get_plans(
    _: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.get_plans())


@router.post("/subscriptions/checkout-session")
async def create_checkout_session(
    request: schemas.CheckoutSessionRequest,
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.create_checkout_session(current_user["id"], request.plan_id))


@router.post("/subscriptions/manage")
async def create_portal_session(
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.create_portal_session(current_user["id"]))


@router.get("/subscriptions/current")
async def get_current_subscription(
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.get_current_subscription(current_user["id"]))


@router.post("/subscriptions/cancel")
async def cancel_subscription(
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    data = await service.cancel_subscription(current_user["id"])
    return success(data, "Subscription will be canceled at the end of the billing period")


@router.post("/subscriptions/reactivate")
async def reactivate_subscription(
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    data = await service.reactivate_subscription(current_user["id"])
    return success(data, "Subscription reactivated")


@router.get("/subscriptions/payments")
async def get_payment_history(
    current_user: dict = Depends(auth_dependencies.require_admin),
) -> dict:
    return success(await service.get_payment_history(current_user["id"]))


@router.post("/subscriptions/stripe-webhook")
@limiter.exempt
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> dict:
    """
    Stripe calls this with the raw event body; the signature covers the exact bytes.
    """
    payload = await request.body()
    return await webhooks.process_webhook_event(payload, stripe_signature)
