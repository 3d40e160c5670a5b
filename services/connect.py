from dataclasses import dataclass

from flask import current_app

from utils.urls import append_query


@dataclass(frozen=True)
class OnboardingLink:
    url: str
    account_id: str


def issue_account_link(gateway, return_url: str, account_id=None) -> OnboardingLink:
    # Reuse the existing account (retrieve also proves it still exists)
    if account_id:
        account = gateway.retrieve_account(account_id)
    else:
        account = gateway.create_account()

    url = gateway.create_account_link(
        account.id,
        refresh_url=append_query(return_url, {"refresh": "1"}),
        return_url=append_query(return_url, {"done": "1", "acct": account.id}),
    )
    current_app.logger.info("onboarding link issued for connect account %s", account.id)
    return OnboardingLink(url=url, account_id=account.id)
