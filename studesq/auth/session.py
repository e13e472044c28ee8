"""Session resolution for both authentication modes.

Callers only see :class:`AuthSession`. The mock strategy reads a self-issued
HS256 token; the OAuth strategy reads the signed carrier cookie written after
a successful OIDC callback and looks the user up by email. Any "not signed
in" outcome is ``None``; nothing in here raises for a bad credential.
"""
from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Request, Response
from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlalchemy.exc import SQLAlchemyError

from studesq.auth import jwt_handler
from studesq.core.config import AuthSettings
from studesq.models import StudentProfile, User, UserRole
from studesq.repository import DataAccess

logger = logging.getLogger(__name__)

OAUTH_SESSION_SALT = "studesq-oauth-session-v1"


@dataclass(frozen=True)
class AuthSession:
    user_id: str
    email: str
    name: str
    role: UserRole

    @classmethod
    def from_claims(cls, claims: dict) -> Optional["AuthSession"]:
        try:
            return cls(
                user_id=str(claims["userId"]),
                email=str(claims["email"]),
                name=str(claims["name"]),
                role=UserRole(claims["role"]),
            )
        except (KeyError, ValueError):
            return None

    @classmethod
    def from_user(cls, user: User) -> "AuthSession":
        return cls(user_id=user.id, email=user.email, name=user.name, role=UserRole(user.role))

    def to_claims(self) -> dict:
        return {
            "userId": self.user_id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
        }


@dataclass(frozen=True)
class OAuthIdentity:
    """Identity proven by the OAuth provider (not yet an application user)."""

    email: str
    subject: Optional[str] = None
    name: Optional[str] = None


class SignInOutcome(str, enum.Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


def _cookie_kwargs(settings: AuthSettings, key: str, value: str) -> dict:
    return {
        "key": key,
        "value": value,
        "max_age": settings.session_max_age,
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def _oauth_serializer(settings: AuthSettings) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=settings.session_secret, salt=OAUTH_SESSION_SALT)


def encode_oauth_identity(settings: AuthSettings, identity: OAuthIdentity) -> str:
    raw = json.dumps(
        {"email": identity.email, "sub": identity.subject, "name": identity.name},
        separators=(",", ":"),
        sort_keys=True,
    )
    return _oauth_serializer(settings).dumps(raw)


def decode_oauth_identity(settings: AuthSettings, value: str | None) -> Optional[OAuthIdentity]:
    if not value:
        return None
    try:
        raw = _oauth_serializer(settings).loads(value, max_age=settings.session_max_age)
        data = json.loads(raw)
    except (BadSignature, ValueError):
        return None
    if not isinstance(data, dict) or not data.get("email"):
        return None
    return OAuthIdentity(
        email=str(data["email"]),
        subject=str(data["sub"]) if data.get("sub") else None,
        name=str(data["name"]) if data.get("name") else None,
    )


class SessionStrategy:
    def __init__(self, settings: AuthSettings, data_access: DataAccess):
        self.settings = settings
        self.data_access = data_access

    def resolve(self, request: Request) -> Optional[AuthSession]:
        raise NotImplementedError


class MockSessionStrategy(SessionStrategy):
    def resolve(self, request: Request) -> Optional[AuthSession]:
        token = request.cookies.get(self.settings.session_cookie_name)
        if not token:
            return None
        try:
            claims = jwt_handler.decode_session_token(
                token,
                self.settings.session_secret,
                algorithm=self.settings.jwt_algorithm,
            )
        except jwt.PyJWTError:
            return None
        return AuthSession.from_claims(claims)


class OAuthSessionStrategy(SessionStrategy):
    def resolve(self, request: Request) -> Optional[AuthSession]:
        identity = decode_oauth_identity(self.settings, request.cookies.get(self.settings.oauth_cookie_name))
        if identity is None:
            return None
        try:
            user = self.data_access.find_user_by_email(identity.email)
        except SQLAlchemyError:
            logger.exception("OAuth session lookup failed for %s", identity.email)
            return None
        if user is None:
            return None
        return AuthSession.from_user(user)


class SessionResolver:
    """Single entry point for reading and writing the caller's session."""

    def __init__(self, settings: AuthSettings, data_access: DataAccess):
        self.settings = settings
        if settings.is_oauth_mode:
            self.strategy: SessionStrategy = OAuthSessionStrategy(settings, data_access)
        else:
            self.strategy = MockSessionStrategy(settings, data_access)

    def resolve_session(self, request: Request) -> Optional[AuthSession]:
        return self.strategy.resolve(request)

    def create_mock_session(self, response: Response, session: AuthSession) -> str:
        token = jwt_handler.create_session_token(
            session.to_claims(),
            self.settings.session_secret,
            self.settings.session_max_age,
            algorithm=self.settings.jwt_algorithm,
        )
        response.set_cookie(**_cookie_kwargs(self.settings, self.settings.session_cookie_name, token))
        return token

    def create_oauth_session(self, response: Response, identity: OAuthIdentity) -> str:
        value = encode_oauth_identity(self.settings, identity)
        response.set_cookie(**_cookie_kwargs(self.settings, self.settings.oauth_cookie_name, value))
        return value

    def destroy_session(self, response: Response) -> None:
        for key in (self.settings.session_cookie_name, self.settings.oauth_cookie_name):
            response.delete_cookie(
                key=key,
                path="/",
                secure=self.settings.cookie_secure,
                httponly=True,
                samesite="lax",
            )


def provision_student_profile(
    data_access: DataAccess,
    user: User,
    *,
    early_founder: bool = False,
) -> Optional[StudentProfile]:
    """Create the profile a STUDENT user needs before any write path can succeed."""
    if UserRole(user.role) != UserRole.STUDENT:
        return None
    profile = data_access.find_student_profile_by_user_id(user.id)
    if profile is None:
        profile = data_access.create_student_profile(user, early_founder=early_founder)
        logger.info("Provisioned student profile %s for user %s", profile.id, user.id)
    return profile


def handle_oauth_sign_in(
    settings: AuthSettings,
    data_access: DataAccess,
    identity: OAuthIdentity,
    *,
    early_founder: bool = False,
) -> SignInOutcome:
    if not settings.is_oauth_mode:
        logger.warning("OAuth sign-in attempted for %s while AUTH_MODE is %r", identity.email, settings.mode)
        return SignInOutcome.DENIED
    if not identity.email:
        return SignInOutcome.DENIED

    user = data_access.find_user_by_email(identity.email)
    if user is None:
        user = data_access.create_user(
            email=identity.email,
            name=identity.name or identity.email,
            role=UserRole.STUDENT,
            google_id=identity.subject,
        )
        logger.info("Created user %s from OAuth sign-in", user.id)

    provision_student_profile(data_access, user, early_founder=early_founder)
    logger.info("User signed in: %s", user.email)
    return SignInOutcome.ALLOWED
