from fastapi import Depends, Request
from sqlalchemy.orm import Session

from studesq.auth.access_control import AccessControl
from studesq.auth.session import AuthSession, SessionResolver
from studesq.core.config import AuthSettings, load_auth_settings
from studesq.core.responses import unauthorized
from studesq.database import get_db
from studesq.repository import DataAccess, SqlAlchemyDataAccess


def get_auth_settings() -> AuthSettings:
    return load_auth_settings()


def get_data_access(db: Session = Depends(get_db)) -> DataAccess:
    return SqlAlchemyDataAccess(db)


def get_session_resolver(
    settings: AuthSettings = Depends(get_auth_settings),
    data_access: DataAccess = Depends(get_data_access),
) -> SessionResolver:
    return SessionResolver(settings, data_access)


def get_access_control(data_access: DataAccess = Depends(get_data_access)) -> AccessControl:
    return AccessControl(data_access)


def get_current_session(
    request: Request,
    resolver: SessionResolver = Depends(get_session_resolver),
) -> AuthSession | None:
    return resolver.resolve_session(request)


def require_session(session: AuthSession | None = Depends(get_current_session)) -> AuthSession:
    if session is None:
        raise unauthorized()
    return session
