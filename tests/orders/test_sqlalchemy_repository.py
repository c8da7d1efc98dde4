import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from domain.common.exceptions import ConcurrentModificationException
from domain.order.entity import PaymentMethod
from domain.order.state_machine import OrderStatus
from infrastructure.database import build_engine, create_tables
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork
from tests.fakes import make_order


async def sqlite_uow_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    sessions = async_sessionmaker(bind=engine, expire_on_commit=False)

    def factory(*, readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory=sessions, readonly=readonly)

    return engine, factory


def test_build_engine_rewrites_sync_driver():
    engine = build_engine("sqlite:///:memory:")
    assert engine.url.drivername == "sqlite+aiosqlite"


@pytest.mark.asyncio
async def test_round_trip_preserves_aggregate():
    engine, uow = await sqlite_uow_factory()
    try:
        order = make_order(payment_method=PaymentMethod.ESEWA)
        async with uow() as tx:
            created = await tx.order_repository.create(order)
        assert created.version == 1

        async with uow(readonly=True) as tx:
            loaded = await tx.order_repository.get_by_id(order.id)
        assert loaded.email == order.email
        assert loaded.address.city == "Kathmandu"
        assert loaded.products[0].price == order.products[0].price
        assert loaded.total_price == order.total_price
        assert loaded.status == OrderStatus.PENDING
        assert loaded.created_at.tzinfo is not None
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_save_is_compare_and_swap():
    engine, uow = await sqlite_uow_factory()
    try:
        order = make_order(payment_method=PaymentMethod.ESEWA)
        async with uow() as tx:
            await tx.order_repository.create(order)

        async with uow(readonly=True) as tx:
            first = await tx.order_repository.get_by_id(order.id)
            second = await tx.order_repository.get_by_id(order.id)

        first.cancel()
        async with uow() as tx:
            saved = await tx.order_repository.save(first)
        assert saved.version == 2

        second.update_status(OrderStatus.PROCESSING)
        with pytest.raises(ConcurrentModificationException):
            async with uow() as tx:
                await tx.order_repository.save(second)

        async with uow(readonly=True) as tx:
            current = await tx.order_repository.get_by_id(order.id)
        assert current.status == OrderStatus.CANCELLED
        assert current.payment_reference.status == "refunded"
        assert current.version == 2
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_listing_and_bulk_delete():
    engine, uow = await sqlite_uow_factory()
    try:
        async with uow() as tx:
            await tx.order_repository.create(make_order())
            await tx.order_repository.create(make_order())
            await tx.order_repository.create(make_order(email="other@example.com"))

        async with uow(readonly=True) as tx:
            mine = await tx.order_repository.list_by_email("reader@example.com")
            everything = await tx.order_repository.list_all(limit=2)
        assert len(mine) == 2
        assert len(everything) == 2

        async with uow() as tx:
            deleted = await tx.order_repository.delete_all()
        assert deleted == 3
    finally:
        await engine.dispose()
