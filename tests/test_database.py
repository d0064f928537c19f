import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from learnlink import models
from learnlink.database import run_in_transaction
from learnlink.exceptions import NotFoundError, TransactionError


@pytest.mark.asyncio
async def test_failed_work_is_rolled_back_and_reported(db, make_user):
    user_id = (await make_user()).id

    async def work(session):
        session.add(models.UserActivityLog(user_id=user_id, activity_type="Delete"))
        await session.flush()
        raise RuntimeError("disk full")

    with pytest.raises(TransactionError) as excinfo:
        await run_in_transaction(db, work, attempts=3, base_delay=0)

    assert excinfo.value.message == "disk full"
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert await db.scalar(select(func.count()).select_from(models.UserActivityLog)) == 0


@pytest.mark.asyncio
async def test_domain_errors_pass_through(db):
    async def work(session):
        raise NotFoundError("Resource not found.")

    with pytest.raises(NotFoundError):
        await run_in_transaction(db, work, attempts=3, base_delay=0)


@pytest.mark.asyncio
async def test_transient_faults_are_retried(db):
    calls = []

    async def work(session):
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("DELETE FROM resources", {}, Exception("connection reset"))
        return len(calls)

    assert await run_in_transaction(db, work, attempts=5, base_delay=0) == 3


@pytest.mark.asyncio
async def test_retries_stop_after_last_attempt(db):
    calls = []

    async def work(session):
        calls.append(1)
        raise OperationalError("DELETE FROM resources", {}, Exception("connection reset"))

    with pytest.raises(TransactionError):
        await run_in_transaction(db, work, attempts=2, base_delay=0)
    assert len(calls) == 2
