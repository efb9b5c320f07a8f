"""Database models for recorded bounces."""
from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Integer, String, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Bounce(Base):
    __tablename__ = "bounces"

    id = Column(Integer, primary_key=True)
    subscriber_uuid = Column(String(36), nullable=False, default="", index=True)
    email = Column(String(320), nullable=False, default="", index=True)
    campaign_id = Column(Integer, nullable=True, index=True)
    campaign_uuid = Column(String(36), nullable=False, default="")
    type = Column(String(20), nullable=False)
    source = Column(String(50), nullable=False, default="", index=True)
    meta = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
