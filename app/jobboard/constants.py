"""
Central constants for the job board application.
"""
from __future__ import annotations

DEV_ENV = "dev"

# Session cookie name and the keys the signed tokens are stored under.
SESSION_COOKIE_NAME = "____gc"
SESSION_JWT_KEY = "jwt"
SESSION_ID_TOKEN_KEY = "id_token"

USER_TYPE_DEVELOPER = "developer"
USER_TYPE_RECRUITER = "recruiter"
USER_TYPE_ADMIN = "admin"
USER_TYPES = frozenset({USER_TYPE_DEVELOPER, USER_TYPE_RECRUITER, USER_TYPE_ADMIN})

SIGN_ON_TOKEN_MAX_AGE_DAYS = 7

AUTH_PAGE = "/auth"
AUTOLOGIN_PAGE = "/autologin"
DEFAULT_DIRECT_TO = "/profile/home"

MACHINE_TOKEN_HEADER = "x-machine-token"

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "JPY": "¥",
    "GBP": "£",
    "AUD": "A$",
    "CAD": "C$",
    "CHF": "Fr",
    "CNY": "元",
    "HKD": "HK$",
    "NZD": "NZ$",
    "SEK": "kr",
    "KRW": "₩",
    "SGD": "S$",
    "NOK": "kr",
    "MXN": "MX$",
    "INR": "₹",
    "RUB": "₽",
    "ZAR": "R",
    "TRY": "₺",
    "BRL": "R$",
}
DEFAULT_CURRENCY_SYMBOL = "$"
