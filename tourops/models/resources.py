"""
Physical resources a tour day is built from: hotels (pickup points), drivers,
boats, guides and restaurants. All are company scoped.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime
from ..database import Base


class _CompanyResource:
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return getattr(self, "nickname", None) or self.name

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"


class Hotel(_CompanyResource, Base):
    __tablename__ = "hotels"

    area = Column(String(100), nullable=True)


class Driver(_CompanyResource, Base):
    __tablename__ = "drivers"

    nickname = Column(String(50), nullable=True)
    phone = Column(String(30), nullable=True)


class Boat(_CompanyResource, Base):
    __tablename__ = "boats"

    captain_name = Column(String(200), nullable=True)
    capacity = Column(Integer, default=0)


class Guide(_CompanyResource, Base):
    __tablename__ = "guides"

    nickname = Column(String(50), nullable=True)
    phone = Column(String(30), nullable=True)
    languages = Column(String(200), nullable=True)


class Restaurant(_CompanyResource, Base):
    __tablename__ = "restaurants"

    location = Column(String(255), nullable=True)
