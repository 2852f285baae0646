import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from sqlalchemy import create_engine, Column, Integer, String, DateTime, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings

logger = logging.getLogger(__name__)

engine = create_engine(settings.DATABASE_URL, connect_args={"check_same_thread": False}
                       if settings.DATABASE_URL.startswith("sqlite") else {})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Database Models
class LicenseValidationAttempt(Base):
    __tablename__ = "license_validation_attempts"

    id = Column(Integer, primary_key=True, index=True)
    license_key = Column(String(255))
    domain = Column(String(255))

    # Attempt Result
    result = Column(String(20), nullable=False)  # success, invalid, offline, failed
    error_message = Column(Text)

    attempted_at = Column(DateTime, default=datetime.utcnow, index=True)

def init_db(bind=None):
    """
    Create tables, making sure a SQLite database directory exists first.
    """
    bind = bind or engine
    url = bind.url
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=bind)

class AttemptLog:
    """
    Records every network verification attempt for diagnostics.

    Database failures are logged and never propagate to the caller.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def record(self, license_key: str, domain: str, result: str, error_message: Optional[str] = None):
        db = self.session_factory()
        try:
            db.add(LicenseValidationAttempt(
                license_key=license_key,
                domain=domain,
                result=result,
                error_message=error_message
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Could not record verification attempt: %s", e)
        finally:
            db.close()

    def recent(self, limit: int = 20) -> List[LicenseValidationAttempt]:
        db = self.session_factory()
        try:
            return (
                db.query(LicenseValidationAttempt)
                .order_by(LicenseValidationAttempt.id.desc())
                .limit(limit)
                .all()
            )
        finally:
            db.close()
