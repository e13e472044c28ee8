"""OpenID Connect client for OAuth mode (Google by default).

Authorization-code flow with PKCE. The login transaction (state, nonce,
verifier, return path) travels in one short-lived signed cookie.
"""
from __future__ import annotations

import base64
import hashlib
import json
import os
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import jwt  # PyJWT
import requests
from itsdangerous import BadSignature, URLSafeTimedSerializer

from studesq.core.config import AuthSettings

OAUTH_TX_COOKIE_NAME = "studesq_oauth_tx"
OAUTH_TX_TTL_SECONDS = 600
OAUTH_TX_SALT = "studesq-oauth-tx-v1"
DISCOVERY_TTL_SECONDS = 3600

_discovery_cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}
_jwks_cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def random_token(nbytes: int = 32) -> str:
    return b64url(os.urandom(nbytes))


def pkce_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return b64url(digest)


def sanitize_next_path(next_path: str | None) -> str:
    """Only relative paths are allowed as post-login redirects."""
    p = (next_path or "").strip().replace("\r", "").replace("\n", "")
    if not p.startswith("/") or p.startswith("//"):
        return "/dashboard"
    return p


def _get_cached_json(cache: Dict[str, Tuple[float, Dict[str, Any]]], url: str) -> Dict[str, Any]:
    now = time.time()
    ts, cached = cache.get(url, (0.0, None))
    if cached is not None and now - ts < DISCOVERY_TTL_SECONDS:
        return cached
    r = requests.get(url, timeout=10)
    r.raise_for_status()
    data = r.json()
    if not isinstance(data, dict):
        raise ValueError(f"Invalid JSON document at {url}")
    cache[url] = (now, data)
    return data


def get_discovery(settings: AuthSettings) -> Dict[str, Any]:
    if not settings.oidc_discovery_url:
        raise ValueError("OIDC discovery URL not configured")
    return _get_cached_json(_discovery_cache, settings.oidc_discovery_url)


def build_authorize_url(settings: AuthSettings, *, state: str, nonce: str, code_challenge: str) -> str:
    if not settings.oidc_client_id:
        raise ValueError("OIDC client ID not configured")

    auth_endpoint = str(get_discovery(settings).get("authorization_endpoint") or "")
    if not auth_endpoint:
        raise ValueError("OIDC discovery missing authorization_endpoint")

    params = {
        "client_id": settings.oidc_client_id,
        "redirect_uri": settings.oidc_redirect_uri,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "nonce": nonce,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "prompt": "consent",
        "access_type": "offline",
    }
    return f"{auth_endpoint}?{urlencode(params)}"


def exchange_code_for_tokens(settings: AuthSettings, *, code: str, code_verifier: str) -> Dict[str, Any]:
    if not settings.oidc_client_id or not settings.oidc_client_secret:
        raise ValueError("OIDC client ID/secret not configured")

    token_endpoint = str(get_discovery(settings).get("token_endpoint") or "")
    if not token_endpoint:
        raise ValueError("OIDC discovery missing token_endpoint")

    payload = {
        "client_id": settings.oidc_client_id,
        "client_secret": settings.oidc_client_secret,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": settings.oidc_redirect_uri,
        "code_verifier": code_verifier,
    }
    r = requests.post(token_endpoint, data=payload, timeout=10)
    if r.status_code >= 400:
        raise ValueError(f"Token exchange failed (status={r.status_code})")
    data = r.json()
    if not isinstance(data, dict):
        raise ValueError("Invalid token response")
    return data


def validate_id_token(settings: AuthSettings, *, id_token: str, expected_nonce: str) -> Dict[str, Any]:
    """Verify signature (JWKS), issuer, audience and nonce of an ID token."""
    disc = get_discovery(settings)
    issuer = str(disc.get("issuer") or "")
    jwks_uri = str(disc.get("jwks_uri") or "")
    if not issuer or not jwks_uri:
        raise ValueError("OIDC discovery missing issuer/jwks_uri")

    kid = str(jwt.get_unverified_header(id_token).get("kid") or "")
    if not kid:
        raise ValueError("ID token missing kid")

    keys = _get_cached_json(_jwks_cache, jwks_uri).get("keys")
    if not isinstance(keys, list):
        raise ValueError("Invalid JWKS keys")
    jwk = next((k for k in keys if isinstance(k, dict) and str(k.get("kid") or "") == kid), None)
    if jwk is None:
        raise ValueError("Unknown signing key (kid)")

    key = jwt.algorithms.RSAAlgorithm.from_jwk(json.dumps(jwk))
    claims = jwt.decode(
        id_token,
        key=key,
        algorithms=["RS256"],
        audience=settings.oidc_client_id,
        issuer=issuer,
        options={"require": ["exp", "iat", "iss", "aud"]},
    )

    nonce = str(claims.get("nonce") or "")
    if not nonce or nonce != expected_nonce:
        raise ValueError("Nonce mismatch")

    email_verified = claims.get("email_verified")
    if email_verified is not None and email_verified is not True:
        raise ValueError("Email not verified")

    return claims


def _tx_serializer(settings: AuthSettings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=settings.session_secret, salt=OAUTH_TX_SALT)


def encode_login_transaction(settings: AuthSettings, *, state: str, nonce: str, verifier: str, next_path: str) -> str:
    return _tx_serializer(settings).dumps(
        {"state": state, "nonce": nonce, "verifier": verifier, "next": next_path}
    )


def decode_login_transaction(settings: AuthSettings, value: str | None) -> Optional[Dict[str, str]]:
    if not value:
        return None
    try:
        data = _tx_serializer(settings).loads(value, max_age=OAUTH_TX_TTL_SECONDS)
    except BadSignature:
        return None
    if not isinstance(data, dict) or not all(data.get(k) for k in ("state", "nonce", "verifier")):
        return None
    return data
