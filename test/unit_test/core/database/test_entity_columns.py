"""Column type checks shared by every table."""

from datetime import datetime

import pytest
import sqlalchemy as sa
from sqlmodel import SQLModel

import omnicrm.core.database.entities  # noqa: F401
from omnicrm.core.database import utc_now
from omnicrm.core.database.entities.sync import SyncSession


def _datetime_columns():
    for table in SQLModel.metadata.sorted_tables:
        for column in table.columns:
            try:
                python_type = column.type.python_type
            except NotImplementedError:
                continue
            if python_type is datetime:
                yield column


DATETIME_COLUMNS = list(_datetime_columns())


def test_timestamp_columns_are_found():
    names = {str(column) for column in DATETIME_COLUMNS}
    assert {"contacts.created_at", "onboarding_tokens.expires_at", "raw_events.occurred_at"} <= names


@pytest.mark.parametrize("column", DATETIME_COLUMNS, ids=str)
def test_timestamp_columns_store_naive_utc(column):
    assert type(column.type) is sa.DateTime
    assert column.type.timezone is False


def test_utc_now_is_naive():
    assert utc_now().tzinfo is None


async def test_naive_timestamps_roundtrip(in_memory_session):
    started = utc_now()
    in_memory_session.add(SyncSession(user_id="user-db-1", service="gmail", started_at=started, completed_at=started))
    await in_memory_session.commit()

    stored = (await in_memory_session.execute(sa.select(SyncSession.started_at))).scalar_one()
    assert stored == started
