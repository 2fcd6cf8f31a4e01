from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from .database import Base
from datetime import datetime, timezone


def utcnow():
    return datetime.now(timezone.utc)


class Player(Base):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    roblox_id = Column(String(50), nullable=False, unique=True)
    username = Column(String(100), nullable=False)
    avatar_url = Column(Text, nullable=False)
    combat_title = Column(String(100), default="Pirate")
    points = Column(Integer, default=0)
    bounty = Column(String(20), default="0")
    region = Column(String(10), default="NA")
    webhook_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    tiers = relationship("Tier", back_populates="player", cascade="all, delete-orphan", passive_deletes=True)


class Tier(Base):
    __tablename__ = "tiers"
    __table_args__ = (UniqueConstraint("player_id", "category", name="uq_tiers_player_category"),)

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    category = Column(String(20), nullable=False)  # melee, fruit, sword, gun, bounty
    tier = Column(String(5), nullable=False)  # SS, S, A, B, C, D, E
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    player = relationship("Player", back_populates="tiers")


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, unique=True)
    password = Column(String(255), nullable=False)  # bcrypt hash
    is_super_admin = Column(Boolean, nullable=False, default=False)
    can_manage_players = Column(Boolean, nullable=False, default=True)
    can_manage_tiers = Column(Boolean, nullable=False, default=True)
    can_manage_admins = Column(Boolean, nullable=False, default=False)
    can_delete_data = Column(Boolean, nullable=False, default=False)
    can_view_admins = Column(Boolean, nullable=False, default=False)
    can_manage_database = Column(Boolean, nullable=False, default=False)
    can_change_settings = Column(Boolean, nullable=False, default=False)
