from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from worklogger.validation import DEFAULT_DAILY_HOURS

Base = declarative_base()


class WorkConfig(BaseModel):
    """Per-user tracker credentials and preferences, read fresh on every run."""

    user_id: str = Field(..., description="Chat user the worklogs belong to")
    guild_id: str = Field(..., description="Chat workspace the user configured from")
    host: str = Field(..., description="Tracker host, e.g. acme.atlassian.net")
    username: str = Field(..., description="Tracker login email")
    token: str = Field(..., repr=False)
    custom_query_template: Optional[str] = Field(
        default=None,
        description="Query override; {0} is replaced with the days-ago value",
    )
    # Bounds are checked per run so one bad row fails only its own user.
    daily_hours: int = Field(default=DEFAULT_DAILY_HOURS)
    paused: bool = Field(default=False)


class WorkConfigRow(Base):
    __tablename__ = "work_configs"
    __table_args__ = (
        UniqueConstraint("guild_id", "user_id", name="uq_work_configs_guild_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    guild_id: Mapped[str] = mapped_column(String, nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    host: Mapped[str] = mapped_column(String, nullable=False)
    username: Mapped[str] = mapped_column(String, nullable=False)
    token: Mapped[str] = mapped_column(String, nullable=False)
    custom_query_template: Mapped[str | None] = mapped_column(String, nullable=True)
    daily_hours: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_DAILY_HOURS, nullable=False
    )
    paused: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


__all__ = ["Base", "WorkConfig", "WorkConfigRow"]
