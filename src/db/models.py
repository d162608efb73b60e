from sqlalchemy import Column, String, DateTime, JSON, Index
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ApplicationRow(Base):
    """One accepted enrollment application, keyed by its reference number"""

    __tablename__ = "applications"

    # Primary key doubles as the collision detector for reference allocation
    reference_number = Column(String(32), primary_key=True)

    # Denormalized lookup columns
    email = Column(String, nullable=False, index=True)
    programme = Column(String, nullable=False, index=True)

    # Full structured record as assembled by the submission service
    payload = Column(JSON, nullable=False)

    submitted_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_applications_programme_submitted", "programme", "submitted_at"),
    )

    def __repr__(self) -> str:
        return f"<ApplicationRow(ref={self.reference_number}, programme={self.programme})>"
