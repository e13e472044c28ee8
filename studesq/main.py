import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from studesq.core import config
from studesq.core.responses import register_exception_handlers
from studesq.database import init_db
from studesq.routes import auth_routes, opportunity_routes, student_routes, waitlist_routes

config.configure_logging()
config.validate_runtime_config()

app = FastAPI(title='Studesq API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)
register_exception_handlers(app)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        init_db()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')
    logger.info('Studesq API started (auth mode: %s)', config.AUTH_MODE)


@app.get('/')
def root():
    return {'status': 'Studesq API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(student_routes.router)
app.include_router(opportunity_routes.router)
app.include_router(waitlist_routes.router)
