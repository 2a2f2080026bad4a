"""FastAPI dependencies for sessions, services and the database."""

from datetime import timedelta
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from armory.config import get_settings
from armory.database import get_db
from armory.errors import BillingError
from armory.models.account import Account
from armory.services.account_service import AccountService, AuthContext
from armory.services.billing import BillingService
from armory.services.email_service import EmailService
from armory.services.password_recovery import PasswordRecoveryService
from armory.services.session_cache import SessionCache
from armory.services.subscription_service import SubscriptionService


@lru_cache
def get_session_cache() -> SessionCache:
    """Process-wide session cache."""
    settings = get_settings()
    return SessionCache(
        capacity=settings.session_cache_size,
        ttl=timedelta(hours=settings.session_ttl_hours),
    )


@lru_cache
def get_email_service() -> EmailService:
    """Get email service instance."""
    return EmailService()


def get_billing_service() -> BillingService | None:
    """Get the Stripe adapter, or None when payments are not configured."""
    try:
        return BillingService()
    except BillingError:
        return None


def get_account_service(
    db: Annotated[Session, Depends(get_db)],
    notifier: Annotated[EmailService, Depends(get_email_service)],
    sessions: Annotated[SessionCache, Depends(get_session_cache)],
) -> AccountService:
    """Get account service with dependencies."""
    return AccountService(db, notifier, sessions)


def get_recovery_service(
    db: Annotated[Session, Depends(get_db)],
    notifier: Annotated[EmailService, Depends(get_email_service)],
) -> PasswordRecoveryService:
    """Get password recovery service with dependencies."""
    return PasswordRecoveryService(db, notifier)


def get_subscription_service(
    db: Annotated[Session, Depends(get_db)],
    billing: Annotated[BillingService | None, Depends(get_billing_service)],
) -> SubscriptionService:
    """Get subscription service with dependencies."""
    return SubscriptionService(db, billing)


def get_auth_context(
    request: Request,
    service: Annotated[AccountService, Depends(get_account_service)],
) -> AuthContext:
    """Resolve the session cookie to the authenticated account."""
    token = request.cookies.get(get_settings().session_cookie_name)
    context = service.resolve_session(token)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="You must log in to access that resource",
        )
    return context


def get_current_account(
    context: Annotated[AuthContext, Depends(get_auth_context)],
) -> Account:
    """Get the current authenticated account."""
    return context.account


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value="",
        max_age=-1,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
