"""Order and payment record lookups"""

from app.api.v1.orders import crud as orders_crud
from app.api.v1.payments import crud
from app.models import OrderPaymentStatus as S
from tests.factories import order_status, seed_order


async def test_order_lookups(session_factory):
    order_id, _ = await seed_order(session_factory, short_id="ORD42", provider_order_id="order_42")

    async with session_factory() as db:
        assert (await orders_crud.find_order_by_short_id(db, "ORD42")).id == order_id
        assert (await orders_crud.find_by_provider_order_id(db, "order_42")).id == order_id
        assert await orders_crud.find_order_by_short_id(db, "ORD43") is None
        assert await orders_crud.get_payment_status(db, order_id) == S.AWAITING_PAYMENT


async def test_conditional_update_matches_only_listed_statuses(session_factory):
    order_id, _ = await seed_order(session_factory, status=S.PAYMENT_FAILED)

    async with session_factory() as db:
        async with db.begin():
            assert not await orders_crud.update_status_conditional(
                db, order_id, S.PAYMENT_RECEIVED, [S.AWAITING_PAYMENT]
            )
            assert await orders_crud.update_status_conditional(
                db, order_id, S.PAYMENT_RECEIVED, [S.AWAITING_PAYMENT, S.PAYMENT_FAILED]
            )

    assert await order_status(session_factory, order_id) == S.PAYMENT_RECEIVED


async def test_record_lookups(session_factory):
    order_id, record_id = await seed_order(
        session_factory, provider_order_id="order_42", provider_payment_id="pay_42", amount_received=900
    )

    async with session_factory() as db:
        assert (await crud.find_by_provider_order_id(db, "order_42")).id == record_id
        assert (await crud.find_by_provider_payment_id(db, "pay_42")).id == record_id
        assert (await crud.get_active_record_for_order(db, order_id)).id == record_id
        assert await crud.refunded_total(db, record_id) == 0


async def test_create_payment_record(session_factory):
    order_id, _ = await seed_order(session_factory, provider_order_id=None)

    async with session_factory() as db:
        async with db.begin():
            record = await crud.create_payment_record(db, order_id, "order_NEW")

    assert record.id is not None
    assert record.provider_payment_id is None
    assert record.amount_received is None
    assert record.refund_id is None


async def test_retired_records_are_hidden(session_factory):
    order_id, record_id = await seed_order(session_factory, provider_order_id="order_42")

    async with session_factory() as db:
        async with db.begin():
            assert await crud.retire_payment_records(db, order_id) == 1

    async with session_factory() as db:
        assert await crud.find_by_provider_order_id(db, "order_42") is None
        assert await crud.get_active_record_for_order(db, order_id) is None
        assert await orders_crud.find_by_provider_order_id(db, "order_42") is None
