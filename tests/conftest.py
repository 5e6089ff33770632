import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ['OPENAI_API_KEY'] = ''

from backend.auth.passwords import hash_password  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.exercise import Exercise  # noqa: E402
from backend.models.sample_database import SampleDatabase  # noqa: E402
from backend.models.submission import Submission  # noqa: E402
from backend.models.user import Role, User  # noqa: E402

ROUTE_MODULES = (
    'backend.routes.auth_routes',
    'backend.routes.admin_routes',
    'backend.routes.database_routes',
    'backend.routes.exercise_routes',
    'backend.routes.submission_routes',
)

TOYS_SCHEMA = """
CREATE TABLE Toys (
    toyId INTEGER PRIMARY KEY,
    toyName VARCHAR(50) NOT NULL,
    category VARCHAR(30),
    price DECIMAL(6, 2)
);
"""

TOYS_SEED = """
INSERT INTO Toys (toyId, toyName, category, price) VALUES
    (1, 'Teddy Bear', 'Plush', 19.99),
    (2, 'Race Car', 'Vehicles', 24.50),
    (3, 'Puzzle Cube', 'Puzzles', 9.99),
    (4, 'Doll House', 'Dolls', 79.00),
    (5, 'Kite', 'Outdoor', 14.25),
    (6, 'Train Set', 'Vehicles', 59.90),
    (7, 'Jump Rope', 'Outdoor', 5.75),
    (8, 'Board Game', NULL, 29.99);
"""


@pytest.fixture(autouse=True)
def skip_database_readiness(monkeypatch: pytest.MonkeyPatch) -> None:
    for module in ROUTE_MODULES:
        monkeypatch.setattr(f'{module}.ensure_database_ready', lambda: None)


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    tables = [User.__table__, SampleDatabase.__table__, Exercise.__table__, Submission.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(tables)))


@pytest.fixture
def make_user(db):
    def _make_user(email: str, role: Role = Role.STUDENT, password: str = 'secret123', blocked: bool = False) -> User:
        user = User(
            email=email,
            hashed_password=hash_password(password),
            name=email.split('@')[0].title(),
            role=role,
            is_blocked=blocked,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def teacher(make_user) -> User:
    return make_user('teacher@example.edu', Role.TEACHER)


@pytest.fixture
def tutor(make_user) -> User:
    return make_user('tutor@example.edu', Role.TUTOR)


@pytest.fixture
def student(make_user) -> User:
    return make_user('student@example.edu', Role.STUDENT)


@pytest.fixture
def toys_database(db, teacher) -> SampleDatabase:
    database = SampleDatabase(name='ToyStore', schema_sql=TOYS_SCHEMA, seed_data=TOYS_SEED, author_id=teacher.id)
    db.add(database)
    db.commit()
    db.refresh(database)
    return database


@pytest.fixture
def toys_exercise(db, teacher, toys_database) -> Exercise:
    exercise = Exercise(
        title='All toys',
        description='List every toy in the store.',
        initial_query='SELECT ',
        solution_query='SELECT * FROM Toys',
        database_id=toys_database.id,
        author_id=teacher.id,
    )
    db.add(exercise)
    db.commit()
    db.refresh(exercise)
    return exercise


@pytest.fixture
def toys_schema() -> str:
    return TOYS_SCHEMA


@pytest.fixture
def toys_seed() -> str:
    return TOYS_SEED
