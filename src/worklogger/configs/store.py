from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from worklogger.configs.models import WorkConfig, WorkConfigRow
from worklogger.validation import validate_int


class WorkConfigRepository(Protocol):
    async def list_active(self) -> list[WorkConfig]:
        ...


class SqlAlchemyWorkConfigStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def list_active(self) -> list[WorkConfig]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(WorkConfigRow)
                .where(WorkConfigRow.paused.is_(False))
                .order_by(WorkConfigRow.id)
            )
            return [_to_payload(row) for row in result.scalars().all()]

    async def get(self, *, guild_id: str, user_id: str) -> Optional[WorkConfig]:
        async with self._sessionmaker() as session:
            row = await _find(session, guild_id=guild_id, user_id=user_id)
            return _to_payload(row) if row else None

    async def upsert(self, config: WorkConfig) -> WorkConfig:
        daily_hours = validate_int(config.daily_hours, "Daily hours", minimum=1, maximum=24)
        async with self._sessionmaker() as session:
            row = await _find(session, guild_id=config.guild_id, user_id=config.user_id)
            if row is None:
                row = WorkConfigRow(guild_id=config.guild_id, user_id=config.user_id)
                session.add(row)

            row.host = config.host
            row.username = config.username
            row.token = config.token
            row.custom_query_template = config.custom_query_template
            row.daily_hours = daily_hours
            row.paused = config.paused
            row.updated_at = datetime.utcnow()
            await session.commit()
            await session.refresh(row)
            return _to_payload(row)

    async def set_paused(
        self, *, guild_id: str, user_id: str, paused: bool
    ) -> Optional[WorkConfig]:
        return await self._patch(guild_id=guild_id, user_id=user_id, paused=paused)

    async def set_daily_hours(
        self, *, guild_id: str, user_id: str, daily_hours: int
    ) -> Optional[WorkConfig]:
        daily_hours = validate_int(daily_hours, "Daily hours", minimum=1, maximum=24)
        return await self._patch(guild_id=guild_id, user_id=user_id, daily_hours=daily_hours)

    async def _patch(self, *, guild_id: str, user_id: str, **updates) -> Optional[WorkConfig]:
        async with self._sessionmaker() as session:
            row = await _find(session, guild_id=guild_id, user_id=user_id)
            if row is None:
                return None
            for field, value in updates.items():
                setattr(row, field, value)
            row.updated_at = datetime.utcnow()
            await session.commit()
            await session.refresh(row)
            return _to_payload(row)


async def ensure_work_config_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(
            lambda sync_conn: WorkConfigRow.__table__.create(sync_conn, checkfirst=True)
        )


async def _find(session: AsyncSession, *, guild_id: str, user_id: str) -> WorkConfigRow | None:
    result = await session.execute(
        select(WorkConfigRow).where(
            WorkConfigRow.guild_id == guild_id, WorkConfigRow.user_id == user_id
        )
    )
    return result.scalar_one_or_none()


def _to_payload(row: WorkConfigRow) -> WorkConfig:
    return WorkConfig(
        user_id=row.user_id,
        guild_id=row.guild_id,
        host=row.host,
        username=row.username,
        token=row.token,
        custom_query_template=row.custom_query_template,
        daily_hours=row.daily_hours,
        paused=row.paused,
    )


__all__ = [
    "SqlAlchemyWorkConfigStore",
    "WorkConfigRepository",
    "ensure_work_config_schema",
]
