from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ladder.core.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # Request handlers run in a threadpool; writers queue on the file lock
    connect_args = {"check_same_thread": False, "timeout": 30}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args=connect_args,
    echo=settings.DEBUG
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
