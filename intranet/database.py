from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from intranet.core.config import settings

# Support both PostgreSQL and SQLite via centralized settings
DATABASE_URL = settings.database_url

if DATABASE_URL.startswith("postgresql"):
    engine = create_engine(DATABASE_URL)
else:
    engine = create_engine(
        DATABASE_URL, connect_args={"check_same_thread": False}
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Session Provider: Provides a database session per request.
    Transaction management is handled explicitly in the Service Layer.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Registers all domain models and creates the schema.
    Called from the application startup lifespan.
    """
    from intranet.models import (  # noqa: F401
        organization, user, hotel_property, department, job_title,
        leave_request, hr_request, notification, audit_log, pii_access_log,
        task, maintenance_ticket,
    )
    Base.metadata.create_all(bind=engine)
