"""
Shared fixtures: a file-backed SQLite database per test (the manifest reads
on separate sessions, which an in-memory database would not share), a seeder
for the reference data, and an API client wired to that database.
"""

import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tourops.database import Base, build_engine
from tourops.models import (
    Agent, AgentPricing, AgentStaff, AgentType, Boat, Booking, BookingStatus,
    Driver, Guide, Hotel, PricingType, Program, Restaurant,
)

COMPANY_ID = "company-1"
OTHER_COMPANY_ID = "company-2"
ACTIVITY_DATE = date(2025, 12, 27)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'tourops_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class Seeder:
    """Inserts reference rows with sensible defaults and commits each one"""

    def __init__(self, db, company_id: str = COMPANY_ID):
        self.db = db
        self.company_id = company_id

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def program(self, name="Phi Phi Island", pricing_type=PricingType.FLAT.value, base_price=Decimal("1000"),
                adult_price=None, child_price=None, company_id=None, **kwargs):
        return self._save(Program(
            company_id=company_id or self.company_id,
            name=name,
            pricing_type=pricing_type,
            base_price=base_price,
            adult_selling_price=adult_price,
            child_selling_price=child_price,
            **kwargs
        ))

    def per_head_program(self, name="James Bond Island", adult_price=Decimal("500"), child_price=Decimal("250"), **kwargs):
        return self.program(name=name, pricing_type=PricingType.PER_HEAD.value, base_price=None,
                            adult_price=adult_price, child_price=child_price, **kwargs)

    def boat(self, name="Sea Star", captain_name="Somchai", capacity=30, company_id=None):
        return self._save(Boat(company_id=company_id or self.company_id, name=name,
                               captain_name=captain_name, capacity=capacity))

    def guide(self, name="Anan", nickname=None, company_id=None):
        return self._save(Guide(company_id=company_id or self.company_id, name=name, nickname=nickname))

    def restaurant(self, name="Baan Rim Nam", company_id=None):
        return self._save(Restaurant(company_id=company_id or self.company_id, name=name))

    def hotel(self, name="Patong Beach Hotel", company_id=None):
        return self._save(Hotel(company_id=company_id or self.company_id, name=name))

    def driver(self, name="Chai", nickname=None, company_id=None):
        return self._save(Driver(company_id=company_id or self.company_id, name=name, nickname=nickname))

    def agent(self, name="Andaman Travel", agent_type=AgentType.PARTNER.value, company_id=None):
        return self._save(Agent(company_id=company_id or self.company_id, name=name, agent_type=agent_type))

    def staff(self, agent, full_name="Nok Siriporn"):
        return self._save(AgentStaff(agent_id=agent.id, full_name=full_name))

    def pricing(self, agent, program, **prices):
        return self._save(AgentPricing(agent_id=agent.id, program_id=program.id, **prices))

    def booking(self, program, customer_name="John Smith", activity_date=ACTIVITY_DATE,
                status=BookingStatus.CONFIRMED.value, adults=2, children=0, infants=0,
                agent=None, company_id=None, **kwargs):
        return self._save(Booking(
            company_id=company_id or self.company_id,
            program_id=program.id,
            agent_id=agent.id if agent is not None else None,
            customer_name=customer_name,
            activity_date=activity_date,
            status=status,
            adults=adults,
            children=children,
            infants=infants,
            **kwargs
        ))


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def client(session_factory):
    """API client on the test database, rate limits off"""
    from fastapi.testclient import TestClient
    from tourops.main import app
    from tourops.database import get_db, get_session_factory
    from tourops.utils.rate_limiter import limiter

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    limiter.enabled = False

    yield TestClient(app)

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def headers():
    return {"X-Company-ID": COMPANY_ID}
