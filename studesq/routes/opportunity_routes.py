import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studesq.core.responses import database_unavailable, success_response
from studesq.database import get_db
from studesq.models import Opportunity

logger = logging.getLogger(__name__)

router = APIRouter(tags=['opportunities'])


class OpportunityResponse(BaseModel):
    id: str
    title: str
    description: str
    provider: str | None = None
    url: str | None = None
    date: datetime | None = None
    tags: list[str] = []

    @classmethod
    def from_model(cls, opportunity: Opportunity) -> 'OpportunityResponse':
        return cls(
            id=opportunity.id,
            title=opportunity.title,
            description=opportunity.description,
            provider=opportunity.provider,
            url=opportunity.url,
            date=opportunity.date,
            tags=[tag.strip() for tag in (opportunity.tags or '').split(',') if tag.strip()],
        )


@router.get('/opportunities')
def list_opportunities(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    upcoming: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Opportunity)
        if upcoming:
            query = query.filter(Opportunity.date >= datetime.now(timezone.utc))

        total = query.count()
        opportunities = query.order_by(Opportunity.date.asc()).offset(offset).limit(limit).all()

        return success_response({
            'opportunities': [OpportunityResponse.from_model(opportunity) for opportunity in opportunities],
            'pagination': {
                'total': total,
                'limit': limit,
                'offset': offset,
                'has_more': offset + limit < total,
            },
        })
    except SQLAlchemyError as exc:
        logger.exception('Failed to fetch opportunities')
        raise database_unavailable() from exc
