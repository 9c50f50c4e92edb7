"""
Subscription API schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CheckoutSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan_id: str = Field(..., alias="planId", min_length=1, max_length=255)
