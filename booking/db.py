# booking/db.py

from sqlmodel import SQLModel, create_engine, Session

from booking.config import settings

# Engine = connection to the database
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    # required for SQLite + FastAPI
    connect_args={"check_same_thread": False} if settings.is_sqlite else {},
)


def create_db_and_tables(bind=engine):
    import booking.models  # noqa: F401  registers the tables on SQLModel.metadata

    SQLModel.metadata.create_all(bind)


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
