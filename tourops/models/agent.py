import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from ..database import Base


class AgentType(str, enum.Enum):
    """Booking channel kind"""
    PARTNER = "partner"   # Travel agent, invoiced
    DIRECT = "direct"     # Walk-in desk, website: never invoiced


class Agent(Base):
    __tablename__ = "agents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    unique_code = Column(String(50), nullable=True)
    agent_type = Column(String(20), default=AgentType.PARTNER.value, nullable=False)
    email = Column(String(255), nullable=True)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, default=datetime.utcnow)

    staff = relationship("AgentStaff", back_populates="agent")

    def __repr__(self):
        return f"<Agent {self.name}>"


class AgentStaff(Base):
    __tablename__ = "agent_staff"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False)
    full_name = Column(String(200), nullable=False)
    nickname = Column(String(50), nullable=True)

    agent = relationship("Agent", back_populates="staff")


class AgentPricing(Base):
    """
    Per-program price override for one agent.

    Flat programs read agent_price; per-head programs read
    adult_agent_price / child_agent_price. Absence of a row means
    "use program defaults".
    """
    __tablename__ = "agent_pricing"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False)
    program_id = Column(String(36), ForeignKey("programs.id", ondelete="CASCADE"), nullable=False)

    selling_price = Column(Numeric(10, 2), nullable=True)
    agent_price = Column(Numeric(10, 2), nullable=True)
    adult_agent_price = Column(Numeric(10, 2), nullable=True)
    child_agent_price = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("agent_id", "program_id", name="uq_agent_pricing_agent_program"),
    )

    def __repr__(self):
        return f"<AgentPricing agent={self.agent_id} program={self.program_id}>"
