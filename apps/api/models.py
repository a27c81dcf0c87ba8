from sqlalchemy import Column, Integer, Float, Date, DateTime, ForeignKey, Text, String, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


class DiveLocation(Base):
    __tablename__ = "dive_location"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(Text, nullable=False)
    country = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    dives = relationship("Dive", back_populates="location")


class Dive(Base):
    __tablename__ = "dive"

    id = Column(String(36), primary_key=True, default=_new_id)
    # Owner. Every read/write of a dive filters on both id and user_id.
    user_id = Column(String(36), nullable=False)
    location_id = Column(String(36), ForeignKey("dive_location.id"), nullable=True)
    # Normalized free-text location name (see services.dive_insight.baselines.normalize_location_name)
    location_key = Column(String(120), nullable=True)
    date = Column(Date, nullable=False)

    # Profile (metric units)
    depth = Column(Float, nullable=True)            # max depth, meters
    average_depth = Column(Float, nullable=True)    # meters; null when not logged
    duration = Column(Float, nullable=True)         # minutes
    water_temp = Column(Float, nullable=True)       # celsius

    # Gas
    start_pressure = Column(Float, nullable=True)   # bar
    end_pressure = Column(Float, nullable=True)     # bar
    cylinder_size = Column(Float, nullable=True)    # liters (water capacity)

    notes = Column(Text, nullable=True)
    # Serialized StoredDiveInsight JSON. Latest generation overwrites.
    ai_summary = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    location = relationship("DiveLocation", back_populates="dives")

    __table_args__ = (
        Index("ix_dive_user_date", "user_id", "date"),
        Index("ix_dive_user_location_key", "user_id", "location_key"),
    )


class AiCreditUsage(Base):
    """Per-user, per-UTC-day counter of consumed AI credits."""
    __tablename__ = "ai_credit_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False)
    usage_date = Column(Date, nullable=False)
    used = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "usage_date", name="uq_ai_credit_usage_user_date"),
    )
