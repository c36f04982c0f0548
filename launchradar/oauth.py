"""Twitter OAuth2 (PKCE) の state 管理.

code verifier はリクエストごとに生成し、nonce と共に有効期限付きの署名済み
JWT に格納して HttpOnly Cookie で往復させる。プロセス全体で共有しない。
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import jwt
import requests

from launchradar.config import (
    APP_URL,
    REQUEST_TIMEOUT,
    STATE_SECRET,
    STATE_TTL_SECONDS,
    TWITTER_AUTHORIZE_URL,
    TWITTER_CLIENT_ID,
    TWITTER_CLIENT_SECRET,
    TWITTER_ME_URL,
    TWITTER_SCOPES,
    TWITTER_TOKEN_URL,
)
from launchradar.errors import ExternalApiError, OAuthStateError

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/auth/callback/twitter"
STATE_COOKIE = "oauth_state"


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    return _b64url(secrets.token_bytes(32))


def code_challenge(verifier: str) -> str:
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def redirect_uri() -> str:
    return f"{APP_URL}{CALLBACK_PATH}"


def start_authorization(redirect: str = "/create") -> tuple[str, str]:
    """認可 URL と state トークン（Cookie 値）を発行する.

    Returns:
        (authorize_url, state_token)
    """
    verifier = generate_code_verifier()
    nonce = secrets.token_urlsafe(16)
    state_token = jwt.encode({
        "verifier": verifier,
        "nonce": nonce,
        "redirect": redirect,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=STATE_TTL_SECONDS),
    }, STATE_SECRET, algorithm="HS256")

    params = {
        "response_type": "code",
        "client_id": TWITTER_CLIENT_ID,
        "redirect_uri": redirect_uri(),
        "scope": TWITTER_SCOPES,
        "state": nonce,
        "code_challenge": code_challenge(verifier),
        "code_challenge_method": "S256",
    }
    return f"{TWITTER_AUTHORIZE_URL}?{urlencode(params)}", state_token


def verify_state(state_token: str | None, state: str | None) -> dict:
    """Cookie の state トークンを検証し、中身（verifier, redirect）を返す.

    Raises:
        OAuthStateError: トークンなし・期限切れ・署名不正・nonce 不一致
    """
    if not state_token or not state:
        raise OAuthStateError("Missing state or code_verifier")
    try:
        claims = jwt.decode(state_token, STATE_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise OAuthStateError("Authorization request expired") from None
    except jwt.InvalidTokenError:
        raise OAuthStateError("Invalid state token") from None
    if not secrets.compare_digest(str(claims.get("nonce", "")), state):
        raise OAuthStateError("Invalid state parameter")
    return claims


def exchange_code(code: str, verifier: str) -> str:
    """認可コードをアクセストークンに交換し、ユーザー名を返す."""
    try:
        token_resp = requests.post(
            TWITTER_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri(),
                "code_verifier": verifier,
            },
            auth=(TWITTER_CLIENT_ID, TWITTER_CLIENT_SECRET),
            timeout=REQUEST_TIMEOUT,
        )
        token_resp.raise_for_status()
        access_token = token_resp.json()["access_token"]

        me_resp = requests.get(
            TWITTER_ME_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=REQUEST_TIMEOUT,
        )
        me_resp.raise_for_status()
        return me_resp.json()["data"]["username"]
    except (requests.RequestException, KeyError, ValueError) as e:
        logger.error("Twitter トークン交換失敗: %s", e)
        raise ExternalApiError("Failed to verify Twitter account") from e
