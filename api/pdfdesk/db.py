from sqlmodel import SQLModel, create_engine, Session
from .config import DATABASE_URL

def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}

engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True, connect_args=_connect_args(DATABASE_URL))

def init_db():
    from .models import UsageRecord, SavedSignature
    SQLModel.metadata.create_all(engine)

def get_session():
    with Session(engine) as session:
        yield session
