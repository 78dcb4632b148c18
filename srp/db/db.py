from sqlmodel import Session, SQLModel, create_engine

from srp.config import DATABASE_URL

# Register tables on SQLModel.metadata
from srp.models import claim, fleet, process_log, user  # noqa: F401

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)


def init_db(bind=engine):
    SQLModel.metadata.create_all(bind)


def get_session():
    with Session(engine) as session:
        yield session
