from datetime import datetime, timedelta, timezone

import jwt

CLAIM_KEYS = ("userId", "email", "name", "role")


def create_session_token(
    claims: dict,
    secret: str,
    max_age_seconds: int,
    algorithm: str = "HS256",
    issued_at: datetime | None = None,
) -> str:
    issued = issued_at or datetime.now(timezone.utc)
    payload = {key: claims[key] for key in CLAIM_KEYS}
    payload["iat"] = issued
    payload["exp"] = issued + timedelta(seconds=max_age_seconds)
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_session_token(token: str, secret: str, algorithm: str = "HS256") -> dict:
    return jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={"require": ["exp", "iat", *CLAIM_KEYS]},
    )
