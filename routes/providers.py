from flask import Blueprint, request, jsonify, g

from models import db
from models.user import User, ROLE_PROVIDER
from security.rbac import require_roles
from services.capabilities import (
    can_receive_charges,
    get_provider_account,
    open_provider_account,
    refresh_capabilities,
    remember_connect_account,
)
from services.connect import issue_account_link
from services.errors import InvalidRequest
from services.gateway import get_gateway
from utils.auth_context import login_required
from utils.audit import log_event
from utils.urls import is_http_url

providers_bp = Blueprint("providers", __name__, url_prefix="/providers")


# ---------- role selection ----------
@providers_bp.post("/me")
@login_required
def become_provider():
    account = open_provider_account(g.user)
    log_event("PROVIDER_ROLE_SELECTED", user_id=g.user.id, entity="provider_account", entity_id=account.provider_id)
    return jsonify(
        provider_id=account.provider_id,
        connect_account_id=account.connect_account_id,
        charges_enabled=account.charges_enabled,
    ), 200


@providers_bp.get("/<provider_id>/status")
def provider_status(provider_id: str):
    user = db.session.get(User, provider_id)
    if not user or user.role != ROLE_PROVIDER:
        return jsonify(error="Provider not found"), 404
    account = get_provider_account(provider_id)
    return jsonify(
        has_connect_account=bool(account and account.connect_account_id),
        can_accept_charges=can_receive_charges(provider_id),
        connect_account_id=account.connect_account_id if account else None,
    ), 200


# ---------- Stripe Connect onboarding ----------
@providers_bp.post("/connect-link")
@require_roles(ROLE_PROVIDER)
def create_connect_link():
    data = request.get_json(silent=True) or {}
    return_url = data.get("returnUrl")
    account_id = data.get("accountId")

    if not is_http_url(return_url):
        raise InvalidRequest("returnUrl must be an absolute http(s) URL")

    if not account_id:
        existing = get_provider_account(g.user.id)
        account_id = existing.connect_account_id if existing else None

    link = issue_account_link(get_gateway(), return_url, account_id=account_id)
    remember_connect_account(g.user.id, link.account_id)

    log_event("CONNECT_LINK_CREATED", user_id=g.user.id, entity="provider_account", entity_id=g.user.id,
              metadata={"account_id": link.account_id})
    return jsonify(url=link.url, accountId=link.account_id), 200


@providers_bp.post("/capabilities")
@require_roles(ROLE_PROVIDER)
def update_capabilities():
    data = request.get_json(silent=True) or {}
    account_id = data.get("accountId")
    if not account_id:
        raise InvalidRequest("Account ID required")

    account = refresh_capabilities(get_gateway(), g.user.id, str(account_id))

    log_event("PROVIDER_CAPABILITIES_REFRESHED", user_id=g.user.id, entity="provider_account",
              entity_id=g.user.id, metadata={
                  "account_id": account.connect_account_id,
                  "charges_enabled": account.charges_enabled,
              })
    return jsonify(
        success=True,
        charges_enabled=account.charges_enabled,
        payouts_enabled=account.payouts_enabled,
        details_submitted=account.details_submitted,
    ), 200
