import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///fitgd.db"


def database_url() -> str:
    return os.getenv("FITGD_DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL


engine = create_engine(database_url(), echo=False, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
