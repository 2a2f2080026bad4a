"""Owner profile, account deletion and subscription endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from armory.api.dependencies import (
    clear_session_cookie,
    get_account_service,
    get_auth_context,
    get_current_account,
    get_subscription_service,
)
from armory.errors import ValidationError
from armory.models.account import Account
from armory.schemas.auth import AccountResponse, DeleteAccountRequest, MessageResponse, ProfileUpdate
from armory.schemas.subscription import SubscriptionResponse
from armory.services.account_service import AccountService, AuthContext
from armory.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/api/v1/owner", tags=["owner"])


def subscription_view(account: Account, service: SubscriptionService) -> SubscriptionResponse:
    view = SubscriptionResponse.model_validate(account)
    view.active = service.has_active_subscription(account)
    return view


@router.get("/profile", response_model=AccountResponse)
async def get_profile(
    current_account: Annotated[Account, Depends(get_current_account)],
):
    """Get the owner's profile."""
    return current_account


@router.put("/profile", response_model=MessageResponse)
async def update_profile(
    profile: ProfileUpdate,
    response: Response,
    context: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[AccountService, Depends(get_account_service)],
):
    """Update the profile. A new email must be verified and ends the session."""
    if not service.request_email_change(context.account, profile.email):
        return MessageResponse(message="Your profile has been updated.")

    service.logout(context.session_token)
    clear_session_cookie(response)
    return MessageResponse(
        message="Check your new email address to confirm the change, then log in again."
    )


@router.post("/delete-account", response_model=MessageResponse)
async def delete_account(
    request_data: DeleteAccountRequest,
    response: Response,
    context: Annotated[AuthContext, Depends(get_auth_context)],
    service: Annotated[AccountService, Depends(get_account_service)],
):
    """Soft-delete the owner's account."""
    if not request_data.confirm:
        raise ValidationError("Account deletion must be confirmed")

    service.soft_delete(context.account)
    service.logout(context.session_token)
    clear_session_cookie(response)
    return MessageResponse(message="Your account has been deleted. Please come back any time!")


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    current_account: Annotated[Account, Depends(get_current_account)],
    service: Annotated[SubscriptionService, Depends(get_subscription_service)],
):
    """Get the owner's subscription, expiring it first if it has lapsed."""
    service.expire_if_lapsed(current_account)
    return subscription_view(current_account, service)
