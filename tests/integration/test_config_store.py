from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from worklogger.configs.models import WorkConfig, WorkConfigRow
from worklogger.configs.store import SqlAlchemyWorkConfigStore, ensure_work_config_schema
from worklogger.errors import InvalidInput
from worklogger.reconcile.daily import DailyReconcileJob
from worklogger.reconcile.engine import Reconciler
from worklogger.reconcile.models import OutcomeKind
from worklogger.reconcile.sink import LoggingResultSink
from worklogger.tracker.models import WorkItem


@pytest_asyncio.fixture()
async def sessionmaker():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await ensure_work_config_schema(engine)
    await ensure_work_config_schema(engine)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(sessionmaker):
    return SqlAlchemyWorkConfigStore(sessionmaker)


def _config(user_id: str, **overrides) -> WorkConfig:
    values = dict(
        user_id=user_id,
        guild_id="G1",
        host="acme.atlassian.net",
        username=f"{user_id.lower()}@acme.io",
        token="secret-token-123",
    )
    values.update(overrides)
    return WorkConfig(**values)


@pytest.mark.asyncio
async def test_upsert_then_get(store):
    saved = await store.upsert(_config("U1", custom_query_template="project = PROJ"))

    loaded = await store.get(guild_id="G1", user_id="U1")

    assert loaded == saved
    assert loaded.custom_query_template == "project = PROJ"
    assert loaded.daily_hours == 8
    assert await store.get(guild_id="G1", user_id="missing") is None


@pytest.mark.asyncio
async def test_upsert_updates_existing_row(store):
    await store.upsert(_config("U1"))
    await store.upsert(_config("U1", host="other.atlassian.net", daily_hours=6))

    configs = await store.list_active()

    assert len(configs) == 1
    assert configs[0].host == "other.atlassian.net"
    assert configs[0].daily_hours == 6


@pytest.mark.asyncio
async def test_list_active_skips_paused_configs(store):
    await store.upsert(_config("U1"))
    await store.upsert(_config("U2", paused=True))
    await store.upsert(_config("U3"))

    assert [c.user_id for c in await store.list_active()] == ["U1", "U3"]


@pytest.mark.asyncio
async def test_set_paused_and_daily_hours(store):
    await store.upsert(_config("U1"))

    paused = await store.set_paused(guild_id="G1", user_id="U1", paused=True)
    assert paused.paused
    assert await store.list_active() == []

    await store.set_paused(guild_id="G1", user_id="U1", paused=False)
    updated = await store.set_daily_hours(guild_id="G1", user_id="U1", daily_hours=7)
    assert updated.daily_hours == 7
    assert [c.daily_hours for c in await store.list_active()] == [7]

    assert await store.set_paused(guild_id="G1", user_id="nobody", paused=True) is None


@pytest.mark.asyncio
async def test_out_of_range_hours_are_refused_without_writing(store):
    await store.upsert(_config("U1", daily_hours=6))

    with pytest.raises(InvalidInput, match="Daily hours"):
        await store.set_daily_hours(guild_id="G1", user_id="U1", daily_hours=0)
    with pytest.raises(InvalidInput, match="Daily hours"):
        await store.upsert(_config("U1", daily_hours=25))

    assert (await store.get(guild_id="G1", user_id="U1")).daily_hours == 6


@pytest.mark.asyncio
async def test_bad_stored_row_fails_only_its_own_user(sessionmaker, store, tracker):
    tracker.issues = [WorkItem(id="1", key="PROJ-1", summary="Login")]
    await store.upsert(_config("U1"))
    async with sessionmaker() as session:
        session.add(
            WorkConfigRow(
                guild_id="G1",
                user_id="U2",
                host="acme.atlassian.net",
                username="u2@acme.io",
                token="secret-token-123",
                daily_hours=-3,
            )
        )
        await session.commit()

    saturday = datetime(2024, 3, 9, 6, 0, tzinfo=timezone.utc)
    reconciler = Reconciler(tracker, rng=lambda: 0.5, now=lambda: saturday)
    outcomes = await DailyReconcileJob(reconciler, store, LoggingResultSink()).run()

    assert [(o.user_id, o.kind) for o in outcomes] == [
        ("U1", OutcomeKind.LOGGED),
        ("U2", OutcomeKind.FAILED),
    ]
    assert [call["seconds"] for call in tracker.created] == [8 * 3600]
