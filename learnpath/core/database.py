from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from learnpath.core.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """
    Dependency to get a database session.
    Ensures the database session is always closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_session_factory():
    """
    Dependency returning the session factory itself.
    Best-effort writes that may outlive their request (timed-out "go next" writes)
    open their own session from it instead of sharing the request session.
    """
    return SessionLocal

# Development helper. Production schemas are managed by Alembic.
def create_db_and_tables():
    import learnpath.models  # noqa: F401 - registers every model with Base.metadata
    Base.metadata.create_all(bind=engine)

if __name__ == "__main__":
    print("Creating database tables based on models...")
    create_db_and_tables()
    print("Database tables created (if they didn't exist).")
