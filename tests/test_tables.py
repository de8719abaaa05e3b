import uuid

import pytest

from restaurant_orders.exceptions import TableNotFound, TableUnavailable
from restaurant_orders.services.tables import TableOccupancy
from tests.conftest import table_available


async def test_reserve_marks_table_unavailable(db, catalog):
    tables = TableOccupancy(db)

    await tables.reserve(catalog.t1)

    assert await table_available(db, catalog.t1) is False


async def test_reserve_unavailable_table_fails(db, catalog):
    tables = TableOccupancy(db)
    await tables.reserve(catalog.t1)

    with pytest.raises(TableUnavailable):
        await tables.reserve(catalog.t1)


async def test_reserve_unknown_table_fails(db, catalog):
    with pytest.raises(TableNotFound):
        await TableOccupancy(db).reserve(uuid.uuid4())


async def test_release_is_idempotent(db, catalog):
    tables = TableOccupancy(db)
    await tables.reserve(catalog.t1)

    await tables.release(catalog.t1)
    await tables.release(catalog.t1)

    assert await table_available(db, catalog.t1) is True


async def test_release_unknown_table_fails(db, catalog):
    with pytest.raises(TableNotFound):
        await TableOccupancy(db).release(uuid.uuid4())


async def test_list_tables_filters_by_availability(db, catalog):
    tables = TableOccupancy(db)
    await tables.reserve(catalog.t1)

    available = await tables.list_tables(available=True)
    occupied = await tables.list_tables(available=False)

    assert [t.table_number for t in available] == ["T2"]
    assert [t.table_number for t in occupied] == ["T1"]
    assert len(await tables.list_tables()) == 2
