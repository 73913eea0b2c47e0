import re
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from tracker.database import Base


def new_id() -> str:
    """Generate a string identifier for a new row."""
    return uuid.uuid4().hex


def slugify(name: str) -> str:
    """Lowercase a display name into a URL-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    return slug or "company"


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    opportunities = relationship("Opportunity", back_populates="company_ref")

    def __repr__(self):
        return f"<Company {self.name}>"
