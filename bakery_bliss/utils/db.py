# bakery_bliss/utils/db.py

from sqlmodel import SQLModel, create_engine, Session

from bakery_bliss.config import DATABASE_URL

# check_same_thread=False is only needed for SQLite. It's not needed for other databases.
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)


def create_db_and_tables(bind=None):
    # Importing models registers every table on SQLModel.metadata
    import bakery_bliss.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    # Dependency to yield a database session
    with Session(engine) as session:
        yield session
