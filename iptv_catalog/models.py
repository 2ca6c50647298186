"""
SQLAlchemy ORM Models for the IPTV Catalog

This module defines the database models for channels and preferences.
"""
from sqlalchemy import BigInteger, Boolean, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models"""
    pass


class Channel(Base):
    """Channel model for storing catalogued live streams"""
    __tablename__ = "channels"
    # AUTOINCREMENT keeps deleted ids from being handed out again
    __table_args__ = (
        UniqueConstraint("url", name="uq_channel_url"),
        Index("idx_channels_last_updated", "last_updated"),
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    group_title: Mapped[str] = mapped_column(String, nullable=False, default="Uncategorized")
    tvg_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_updated: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    playback_position: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Channel(id={self.id}, name={self.name})>"


class Preference(Base):
    """Key/value preference (e.g. the last imported remote playlist URL)"""
    __tablename__ = "preferences"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<Preference(key={self.key})>"
