"""
Database session management
"""
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from app.core.config import settings
from app.core.logging_config import logger

# Create database engine
connect_args = {}
engine_args = {
    "pool_pre_ping": True,
    "echo": settings.DEBUG
}

if "sqlite" in settings.DATABASE_URL:
    connect_args["check_same_thread"] = False
else:
    engine_args["pool_size"] = 10
    engine_args["max_overflow"] = 20

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    **engine_args
)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base class for models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        logger.error(f"Database session error: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Create tables and seed the bootstrap admin account"""
    from app.db import models
    from app.core.security import get_password_hash

    Base.metadata.create_all(bind=engine)

    if not (settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD):
        logger.info("Database initialized successfully")
        return

    db = SessionLocal()
    try:
        admin = db.query(models.Profile).filter(models.Profile.email == settings.ADMIN_EMAIL).first()
        if not admin:
            admin = models.Profile(
                email=settings.ADMIN_EMAIL,
                full_name="Casaora Admin",
                hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
                role=models.UserRole.ADMIN,
                country=models.CountryCode.CO,
                is_active=True
            )
            db.add(admin)
            logger.info(f"Bootstrap admin created ({settings.ADMIN_EMAIL})")
        elif admin.role != models.UserRole.ADMIN:
            logger.warning(f"Bootstrap admin email {settings.ADMIN_EMAIL} belongs to a non-admin account")
        db.commit()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Error initializing database: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()
