# tests/unit/services/test_sql_store.py
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from catalog_sync.core.exceptions import DatabaseError
from catalog_sync.models import MasterProduct
from catalog_sync.services.feed_mapper import SupplierSkuRecord
from catalog_sync.services.storage.sql import SqlCatalogStore

GLOCK = "764503913617"


def _failure():
    return OperationalError("SELECT", {}, Exception("server closed the connection unexpectedly"))


def _result(value=None):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


@pytest.fixture
def db():
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.flush = AsyncMock()
    session.rollback = AsyncMock()
    return session


class TestReadFailures:
    async def test_get_product_rolls_back_and_raises(self, db):
        db.execute.side_effect = _failure()

        with pytest.raises(DatabaseError) as exc_info:
            await SqlCatalogStore(db).get_product(GLOCK)

        assert GLOCK in str(exc_info.value)
        db.rollback.assert_awaited_once()

    async def test_session_is_usable_after_failed_lookup(self, db):
        product = MasterProduct(upc=GLOCK, name="Glock 19", source="lipseys")
        db.execute.side_effect = [_failure(), _result(product)]
        store = SqlCatalogStore(db)

        with pytest.raises(DatabaseError):
            await store.get_product(GLOCK)

        assert await store.get_product(GLOCK) is product

    async def test_sku_lookup_failure_is_a_database_error(self, db):
        db.execute.side_effect = _failure()

        with pytest.raises(DatabaseError) as exc_info:
            await SqlCatalogStore(db).upsert_sku_mapping(
                SupplierSkuRecord(upc=GLOCK, vendor_sku="GLPA1950203"), "lipseys"
            )

        assert "lipseys" in str(exc_info.value)
        db.rollback.assert_awaited_once()
        db.add.assert_not_called()
        db.commit.assert_not_awaited()


async def test_sku_mapping_created_when_missing(db):
    db.execute.return_value = _result(None)

    await SqlCatalogStore(db).upsert_sku_mapping(
        SupplierSkuRecord(upc=GLOCK, vendor_sku="GLPA1950203", quantity_available=4), "lipseys"
    )

    mapping = db.add.call_args.args[0]
    assert mapping.upc == GLOCK
    assert mapping.supplier_slug == "lipseys"
    assert mapping.vendor_sku == "GLPA1950203"
    assert mapping.quantity_available == 4
    db.commit.assert_awaited_once()


async def test_commit_failure_rolls_back(db):
    db.execute.return_value = _result(None)
    db.commit.side_effect = _failure()

    with pytest.raises(DatabaseError):
        await SqlCatalogStore(db).upsert_sku_mapping(SupplierSkuRecord(upc=GLOCK), "lipseys")

    db.rollback.assert_awaited_once()
