from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from synergysphere.config import DATABASE_URL

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a database session for the duration of one request."""
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
