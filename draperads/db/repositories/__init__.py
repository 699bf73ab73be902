from draperads.db.repositories.ad_accounts import AdAccountsRepository
from draperads.db.repositories.ad_sets import AdSetsRepository
from draperads.db.repositories.ads import AdsRepository
from draperads.db.repositories.oauth_states import OAuthStatesRepository
from draperads.db.repositories.templates import TemplatesRepository
from draperads.db.repositories.users import UsersRepository
from draperads.db.repositories.web_sessions import WebSessionsRepository

__all__ = [
    "AdAccountsRepository",
    "AdSetsRepository",
    "AdsRepository",
    "OAuthStatesRepository",
    "TemplatesRepository",
    "UsersRepository",
    "WebSessionsRepository",
]
