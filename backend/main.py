import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from backend.auth.passwords import hash_password
from backend.core import config
from backend.database import Base, SessionLocal, engine, ensure_submission_schema, run_with_retry
from backend.models import exercise, sample_database, submission, user
from backend.routes import admin_routes, auth_routes, database_routes, exercise_routes, submission_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)
logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='SQL Learning Platform API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


def create_bootstrap_teacher() -> None:
    if not config.BOOTSTRAP_TEACHER_EMAIL or not config.BOOTSTRAP_TEACHER_PASSWORD:
        return

    email = config.BOOTSTRAP_TEACHER_EMAIL.strip().lower()
    db = SessionLocal()
    try:
        if db.query(user.User).filter(user.User.email == email).first():
            return
        db.add(
            user.User(
                email=email,
                hashed_password=hash_password(config.BOOTSTRAP_TEACHER_PASSWORD),
                name=config.BOOTSTRAP_TEACHER_NAME,
                role=user.Role.TEACHER,
                is_blocked=False,
            )
        )
        db.commit()
        logger.info('Created bootstrap teacher account %s', email)
    finally:
        db.close()


@app.on_event('startup')
def initialize_database() -> None:
    try:
        run_with_retry(lambda: Base.metadata.create_all(bind=engine))
        ensure_submission_schema()
        create_bootstrap_teacher()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'SQL Learning Platform API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(admin_routes.router, prefix='/admin')
app.include_router(database_routes.router, prefix='/databases')
app.include_router(exercise_routes.router, prefix='/exercises')
app.include_router(submission_routes.router, prefix='/submissions')
