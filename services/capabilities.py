from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.provider_account import ProviderAccount
from models.user import ROLE_PROVIDER
from services.errors import AccountMismatch, ProviderNotConnected, ProviderNotReady


def get_provider_account(provider_id: str):
    return db.session.get(ProviderAccount, provider_id)


def can_receive_charges(provider_id: str) -> bool:
    account = get_provider_account(provider_id)
    return bool(account and account.connect_account_id and account.charges_enabled)


def require_charge_capability(provider_id: str) -> ProviderAccount:
    """Hard gate before any checkout targets this provider."""
    account = get_provider_account(provider_id)
    if account is None or not account.connect_account_id:
        raise ProviderNotConnected("Provider has not connected a payout account")
    if not account.charges_enabled:
        raise ProviderNotReady("Provider cannot accept charges yet")
    return account


def open_provider_account(user) -> ProviderAccount:
    """Role selection: make the user a provider with no capabilities yet. Idempotent."""
    account = get_provider_account(user.id)
    if account is None:
        account = ProviderAccount(
            provider_id=user.id,
            charges_enabled=False,
            payouts_enabled=False,
            details_submitted=False,
        )
        db.session.add(account)
    user.role = ROLE_PROVIDER
    try:
        db.session.commit()
    except IntegrityError:
        # concurrent role selection already created the row
        db.session.rollback()
        account = get_provider_account(user.id)
    return account


def _bind_account(provider_id: str, connect_account_id: str) -> ProviderAccount:
    account = get_provider_account(provider_id)
    if account is None:
        account = ProviderAccount(provider_id=provider_id)
        db.session.add(account)
    elif account.connect_account_id and account.connect_account_id != connect_account_id:
        raise AccountMismatch("A different connect account is already linked to this provider")
    account.connect_account_id = connect_account_id
    return account


def remember_connect_account(provider_id: str, connect_account_id: str) -> ProviderAccount:
    """Store the connect account id as soon as onboarding starts so retries reuse it."""
    account = _bind_account(provider_id, connect_account_id)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise AccountMismatch("Connect account is linked to another provider") from exc
    return account


def refresh_capabilities(gateway, provider_id: str, connect_account_id: str) -> ProviderAccount:
    """
    Re-read live capability flags from Stripe and persist them.
    The onboarding return URL is never taken as proof of capability.
    """
    live = gateway.retrieve_account(connect_account_id)

    account = _bind_account(provider_id, live.id)
    account.charges_enabled = live.charges_enabled
    account.payouts_enabled = live.payouts_enabled
    account.details_submitted = live.details_submitted
    account.updated_at = datetime.utcnow()
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise AccountMismatch("Connect account is linked to another provider") from exc

    current_app.logger.info(
        "provider %s capabilities refreshed: charges=%s payouts=%s details=%s",
        provider_id, account.charges_enabled, account.payouts_enabled, account.details_submitted,
    )
    return account
