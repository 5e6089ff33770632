from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_roles
from backend.database import get_db
from backend.models.sample_database import SampleDatabase
from backend.models.user import Role, User
from backend.routes.common import database_unavailable, ensure_database_ready
from backend.services.sandbox import validate_database
from backend.services.sql_import import SUPPORTED_DIALECTS, SqlImportError, split_sql_dump

router = APIRouter(tags=['databases'])

teacher_only = require_roles(Role.TEACHER)
staff_only = require_roles(Role.TEACHER, Role.TUTOR)


def _require_text(value: str, label: str) -> str:
    if not value or not value.strip():
        raise ValueError(f'{label} is required.')
    return value


class CreateDatabaseRequest(BaseModel):
    name: str
    schema_sql: str
    seed_data: str = ''

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _require_text(value, 'Name').strip()

    @field_validator('schema_sql')
    @classmethod
    def validate_schema(cls, value: str) -> str:
        return _require_text(value, 'Schema')


class UpdateDatabaseRequest(BaseModel):
    name: str | None = None
    schema_sql: str | None = None
    seed_data: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _require_text(value, 'Name').strip()

    @field_validator('schema_sql')
    @classmethod
    def validate_schema(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _require_text(value, 'Schema')


class ImportDatabaseRequest(BaseModel):
    name: str
    content: str
    dialect: str = 'postgres'

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _require_text(value, 'Name').strip()

    @field_validator('dialect')
    @classmethod
    def validate_dialect(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SUPPORTED_DIALECTS:
            raise ValueError(f'Dialect must be one of: {", ".join(sorted(SUPPORTED_DIALECTS))}.')
        return normalized


class DatabaseResponse(BaseModel):
    id: int
    name: str
    schema_sql: str
    seed_data: str
    author_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ImportDatabaseResponse(BaseModel):
    database: DatabaseResponse
    skipped_statements: list[str]


def get_database_or_404(database_id: int, db: Session) -> SampleDatabase:
    database = db.query(SampleDatabase).filter(SampleDatabase.id == database_id).first()
    if database is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f'Database with ID {database_id} not found.',
        )
    return database


def ensure_loadable(schema_sql: str, seed_data: str | None) -> None:
    error = validate_database(schema_sql, seed_data)
    if error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Schema or seed data could not be loaded: {error}',
        )


def upsert_database(name: str, schema_sql: str, seed_data: str, author_id: int, db: Session) -> SampleDatabase:
    """Create a database, or overwrite the schema and seed of one with the same name."""
    database = db.query(SampleDatabase).filter(SampleDatabase.name == name).first()
    if database is None:
        database = SampleDatabase(name=name, author_id=author_id)
        db.add(database)

    database.schema_sql = schema_sql
    database.seed_data = seed_data
    db.commit()
    db.refresh(database)
    return database


@router.get('/', response_model=list[DatabaseResponse])
def list_databases(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return db.query(SampleDatabase).order_by(SampleDatabase.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{database_id}', response_model=DatabaseResponse)
def get_database(
    database_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return get_database_or_404(database_id, db)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/', response_model=DatabaseResponse, status_code=status.HTTP_201_CREATED)
def create_database(
    data: CreateDatabaseRequest,
    current_user: User = Depends(teacher_only),
    db: Session = Depends(get_db),
):
    ensure_loadable(data.schema_sql, data.seed_data)
    ensure_database_ready()

    try:
        return upsert_database(data.name, data.schema_sql, data.seed_data, current_user.id, db)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/import', response_model=ImportDatabaseResponse, status_code=status.HTTP_201_CREATED)
def import_database(
    data: ImportDatabaseRequest,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    try:
        dump = split_sql_dump(data.content, data.dialect)
    except SqlImportError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    ensure_loadable(dump.schema_sql, dump.seed_data)
    ensure_database_ready()

    try:
        database = upsert_database(data.name, dump.schema_sql, dump.seed_data, current_user.id, db)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return ImportDatabaseResponse(
        database=DatabaseResponse.model_validate(database),
        skipped_statements=dump.skipped,
    )


@router.patch('/{database_id}', response_model=DatabaseResponse)
def update_database(
    database_id: int,
    data: UpdateDatabaseRequest,
    current_user: User = Depends(teacher_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        database = get_database_or_404(database_id, db)

        if data.name is not None and data.name != database.name:
            taken = db.query(SampleDatabase).filter(SampleDatabase.name == data.name).first()
            if taken:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail='A database with this name already exists.',
                )
            database.name = data.name

        schema_sql = database.schema_sql if data.schema_sql is None else data.schema_sql
        seed_data = database.seed_data if data.seed_data is None else data.seed_data
        ensure_loadable(schema_sql, seed_data)

        database.schema_sql = schema_sql
        database.seed_data = seed_data
        db.commit()
        db.refresh(database)
        return database
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{database_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_database(
    database_id: int,
    current_user: User = Depends(teacher_only),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        database = get_database_or_404(database_id, db)
        db.delete(database)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
