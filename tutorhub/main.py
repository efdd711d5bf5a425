import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from tutorhub.core import config
from tutorhub.database import Base, engine, ensure_schema
from tutorhub.models import admin, feedback, material, note, payment, study_session, tutor_application, user  # noqa: F401
from tutorhub.routes import (
    auth_routes,
    feedback_routes,
    material_routes,
    note_routes,
    payment_routes,
    session_routes,
    tutor_routes,
    user_routes,
)

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)


def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@asynccontextmanager
async def lifespan(_app: FastAPI):
    config.validate_runtime_config()
    initialize_database()
    yield
    engine.dispose()


app = FastAPI(title='Tutorhub API', lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.get('/')
def root():
    return {'status': 'Tutorhub API Running'}


app.include_router(auth_routes.router)
app.include_router(user_routes.router)
app.include_router(tutor_routes.router)
app.include_router(session_routes.router)
app.include_router(material_routes.router)
app.include_router(payment_routes.router)
app.include_router(feedback_routes.router)
app.include_router(note_routes.router)
