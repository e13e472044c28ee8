import logging

import jwt
import requests
from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from studesq.auth import oauth
from studesq.auth.dependencies import (
    get_auth_settings,
    get_current_session,
    get_data_access,
    get_session_resolver,
)
from studesq.auth.session import (
    AuthSession,
    OAuthIdentity,
    SessionResolver,
    SignInOutcome,
    handle_oauth_sign_in,
    provision_student_profile,
)
from studesq.core import config
from studesq.core.config import AuthSettings
from studesq.core.constants import all_demo_accounts, find_demo_account
from studesq.core.responses import (
    SERVER_ERROR,
    UNAUTHORIZED,
    VALIDATION_ERROR,
    ApiError,
    database_unavailable,
    forbidden,
    not_found,
    success_response,
)
from studesq.core.validators import EmailPayload
from studesq.models import UserRole
from studesq.repository import DataAccess

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])


class MockSigninRequest(EmailPayload):
    pass


def session_payload(session: AuthSession) -> dict:
    return {
        'id': session.user_id,
        'email': session.email,
        'name': session.name,
        'role': session.role.value,
    }


def _tx_cookie_kwargs(settings: AuthSettings, value: str) -> dict:
    return {
        'key': oauth.OAUTH_TX_COOKIE_NAME,
        'value': value,
        'max_age': oauth.OAUTH_TX_TTL_SECONDS,
        'httponly': True,
        'secure': settings.cookie_secure,
        'samesite': 'lax',
        'path': '/',
    }


@router.post('/mock-signin')
def mock_signin(
    data: MockSigninRequest,
    response: Response,
    settings: AuthSettings = Depends(get_auth_settings),
    data_access: DataAccess = Depends(get_data_access),
    resolver: SessionResolver = Depends(get_session_resolver),
):
    if not settings.is_mock_mode:
        raise forbidden('Mock authentication is disabled. Use OAuth sign-in.')

    account = find_demo_account(data.email)
    if account is None:
        raise not_found('Demo account not found. Please use one of the provided demo emails.')

    try:
        user = data_access.find_user_by_id(account['id']) or data_access.find_user_by_email(account['email'])
        if user is None:
            user = data_access.create_user(
                user_id=account['id'],
                email=account['email'],
                name=account['name'],
                role=UserRole(account['role']),
            )
        provision_student_profile(data_access, user, early_founder=config.ENABLE_EARLY_FOUNDER_BADGE)
    except SQLAlchemyError as exc:
        logger.exception('Mock sign-in failed for %s', account['email'])
        raise database_unavailable() from exc

    session = AuthSession.from_user(user)
    resolver.create_mock_session(response, session)
    logger.info('Mock sign-in: %s (%s)', session.email, session.role.value)
    return {'success': True, 'user': session_payload(session)}


@router.get('/demo-accounts')
def demo_accounts(settings: AuthSettings = Depends(get_auth_settings)):
    if not settings.is_mock_mode:
        raise forbidden('Demo accounts are only available in mock mode.')
    return success_response(all_demo_accounts())


@router.get('/session')
def read_session(session: AuthSession | None = Depends(get_current_session)):
    if session is None:
        return {'authenticated': False, 'user': None}
    return success_response({'authenticated': True, 'user': session_payload(session)})


@router.post('/signout')
@router.get('/signout')
def signout(response: Response, resolver: SessionResolver = Depends(get_session_resolver)):
    resolver.destroy_session(response)
    logger.info('User signed out')
    return {'success': True, 'message': 'Signed out successfully'}


@router.get('/oauth/login')
def oauth_login(
    next_path: str = Query('/dashboard', alias='next'),
    settings: AuthSettings = Depends(get_auth_settings),
):
    if not settings.is_oauth_mode:
        raise forbidden('OAuth sign-in is disabled. Use mock sign-in.')

    state = oauth.random_token()
    nonce = oauth.random_token()
    verifier = oauth.random_token()
    try:
        url = oauth.build_authorize_url(
            settings,
            state=state,
            nonce=nonce,
            code_challenge=oauth.pkce_challenge(verifier),
        )
    except (requests.RequestException, ValueError) as exc:
        logger.exception('Could not build OAuth authorization URL')
        raise ApiError(status.HTTP_502_BAD_GATEWAY, 'OAuth provider unavailable', SERVER_ERROR) from exc

    tx = oauth.encode_login_transaction(
        settings,
        state=state,
        nonce=nonce,
        verifier=verifier,
        next_path=oauth.sanitize_next_path(next_path),
    )
    redirect = RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)
    redirect.headers['Cache-Control'] = 'no-store'
    redirect.set_cookie(**_tx_cookie_kwargs(settings, tx))
    return redirect


@router.get('/oauth/callback')
def oauth_callback(
    request: Request,
    code: str = Query(...),
    state: str = Query(...),
    settings: AuthSettings = Depends(get_auth_settings),
    data_access: DataAccess = Depends(get_data_access),
    resolver: SessionResolver = Depends(get_session_resolver),
):
    if not settings.is_oauth_mode:
        raise forbidden('OAuth sign-in is disabled. Use mock sign-in.')

    tx = oauth.decode_login_transaction(settings, request.cookies.get(oauth.OAUTH_TX_COOKIE_NAME))
    if tx is None or tx['state'] != state.strip():
        raise ApiError(status.HTTP_400_BAD_REQUEST, 'Invalid OAuth state', VALIDATION_ERROR)

    try:
        tokens = oauth.exchange_code_for_tokens(settings, code=code, code_verifier=tx['verifier'])
        id_token = str(tokens.get('id_token') or '').strip()
        if not id_token:
            raise ValueError('Missing id_token in token response')
        claims = oauth.validate_id_token(settings, id_token=id_token, expected_nonce=tx['nonce'])
    except (requests.RequestException, jwt.PyJWTError, ValueError) as exc:
        logger.warning('OAuth callback rejected: %s', exc)
        raise ApiError(status.HTTP_401_UNAUTHORIZED, 'OAuth authentication failed', UNAUTHORIZED) from exc

    email = str(claims.get('email') or '').strip().lower()
    if '@' not in email:
        raise forbidden('Missing email claim')
    identity = OAuthIdentity(
        email=email,
        subject=str(claims.get('sub') or '') or None,
        name=str(claims.get('name') or '').strip() or None,
    )

    try:
        outcome = handle_oauth_sign_in(
            settings,
            data_access,
            identity,
            early_founder=config.ENABLE_EARLY_FOUNDER_BADGE,
        )
    except SQLAlchemyError as exc:
        logger.exception('OAuth sign-in failed for %s', email)
        raise database_unavailable() from exc
    if outcome is SignInOutcome.DENIED:
        raise forbidden('OAuth sign-in was denied.')

    redirect = RedirectResponse(url=oauth.sanitize_next_path(tx.get('next')), status_code=status.HTTP_302_FOUND)
    redirect.headers['Cache-Control'] = 'no-store'
    resolver.create_oauth_session(redirect, identity)
    redirect.delete_cookie(key=oauth.OAUTH_TX_COOKIE_NAME, path='/')
    return redirect
