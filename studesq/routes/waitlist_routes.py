import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studesq.core import config
from studesq.core.responses import database_unavailable, success_response
from studesq.core.validators import EmailPayload
from studesq.database import get_db
from studesq.models import WaitlistSignup

logger = logging.getLogger(__name__)

router = APIRouter(tags=['waitlist'])


class WaitlistSignupRequest(EmailPayload):
    pass


@router.post('/waitlist')
def join_waitlist(data: WaitlistSignupRequest, db: Session = Depends(get_db)):
    if not config.ENABLE_WAITLIST_STORE:
        logger.info('Waitlist signup (not stored): %s', data.email)
        return success_response(
            {'email': data.email, 'stored': False},
            'Thanks for your interest! (Demo mode - email not stored)',
        )

    try:
        existing = db.query(WaitlistSignup).filter(WaitlistSignup.email == data.email).first()
        if existing:
            return success_response(
                {'email': data.email, 'stored': True, 'already_exists': True},
                "You're already on the waitlist!",
            )

        db.add(WaitlistSignup(email=data.email))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Waitlist signup failed for %s', data.email)
        raise database_unavailable() from exc

    logger.info('Waitlist signup: %s', data.email)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content=success_response({'email': data.email, 'stored': True}, 'Successfully added to waitlist!'),
    )
