from datetime import timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import ServiceUnavailable
from google.cloud import firestore as gcf

from conftest import FIXED_NOW, make_item
from pos.core.errors import PersistenceFailure
from pos.repositories.sales import MAX_BATCH_WRITES, SaleRepository, batch_size_for
from pos.services.payments import PaymentLedger


class Snap:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    def to_dict(self):
        return dict(self._data)


DEFAULT_LINES = ((make_item("a", price="1.50", stock=9), 2), (make_item("b", price="2.25", stock=9), 1))


def _txn(engine, lines=DEFAULT_LINES, tenders=(("visa", "4"), ("cash", "2"))):
    cart = engine.empty()
    for item, qty in lines:
        cart = engine.update_quantity(engine.add_item(cart, item), item.item_id, qty)
    ledger = PaymentLedger(cart.grand_total)
    for method, amount in tenders:
        ledger.add_tender(method, Decimal(amount))
    txn, _ = ledger.finalize(cart, engine, lambda now: "RCP20240315ABCDEF12", cashier_id="c-1", now=FIXED_NOW)
    return txn


@pytest.fixture
def db():
    db = MagicMock()
    db.collection.return_value.document.return_value.id = "txn-abc"
    return db


def test_save_writes_one_batch(engine, db):
    txn = _txn(engine)
    batch = db.batch.return_value

    assert SaleRepository("owner-1", db=db).save(txn) == "txn-abc"

    # 1 transaction + 2 line docs + 2 payment docs
    assert batch.set.call_count == 5
    assert batch.update.call_count == 2
    batch.commit.assert_called_once()

    header = batch.set.call_args_list[0].args[1]
    assert header["userId"] == "owner-1"
    assert header["receiptNumber"] == "RCP20240315ABCDEF12"
    assert header["subtotal"] == 5.25
    assert header["tax"] == 0.45
    assert header["total"] == 5.70
    assert header["change"] == 0.30
    assert header["createdAt"] == FIXED_NOW

    stock_patch = batch.update.call_args_list[0].args[1]
    assert isinstance(stock_patch["stock"], gcf.Increment)
    assert stock_patch["stock"].value == -2

    payment = batch.set.call_args_list[-1].args[1]
    assert payment == {
        "transactionId": "txn-abc",
        "userId": "owner-1",
        "method": "cash",
        "amount": 2.0,
        "createdAt": FIXED_NOW,
    }


def test_commit_error_becomes_persistence_failure(engine, db):
    db.batch.return_value.commit.side_effect = ServiceUnavailable("firestore down")
    with pytest.raises(PersistenceFailure) as exc:
        SaleRepository("owner-1", db=db).save(_txn(engine))
    assert exc.value.retryable


def test_oversized_sale_is_refused_before_writing(engine, db):
    items = [(make_item(f"i{n}", price="1", stock=5), 1) for n in range(260)]
    txn = _txn(engine, lines=items, tenders=(("cash", "300"),))
    assert batch_size_for(txn) > MAX_BATCH_WRITES
    with pytest.raises(PersistenceFailure):
        SaleRepository("owner-1", db=db).save(txn)
    db.batch.assert_not_called()


def _history_db(transactions, items, payments):
    cols = {"transactions": MagicMock(), "transactionItems": MagicMock(), "payments": MagicMock()}
    query = cols["transactions"]
    query.where.return_value = query
    query.order_by.return_value = query
    query.limit.return_value = query
    query.stream.return_value = transactions
    cols["transactionItems"].where.return_value.stream.return_value = items
    cols["payments"].where.return_value.stream.return_value = payments
    db = MagicMock()
    db.collection.side_effect = lambda name: cols[name]
    return db


def test_list_transactions_joins_lines_and_payments():
    db = _history_db(
        transactions=[
            Snap("t1", {
                "userId": "owner-1", "receiptNumber": "RCP1", "itemCount": 2, "subtotal": 3.0,
                "discount": 0, "discountType": "amount", "discountAmount": 0, "taxRate": 0.085,
                "tax": 0.26, "total": 3.26, "totalTendered": 5.0, "change": 1.74, "createdAt": FIXED_NOW,
            }),
            Snap("t0", {"userId": "owner-1", "total": 1.0, "createdAt": FIXED_NOW - timedelta(days=40)}),
            Snap("broken", {"userId": "owner-1", "total": 1.0}),
        ],
        items=[Snap("l1", {"transactionId": "t1", "itemId": "a", "itemName": "Coffee", "quantity": 2, "price": 1.5})],
        payments=[Snap("p1", {"transactionId": "t1", "method": "cash", "amount": 5.0})],
    )

    txns = SaleRepository("owner-1", db=db).list_transactions(start=FIXED_NOW - timedelta(days=7), end=FIXED_NOW)

    assert [t.transaction_id for t in txns] == ["t1"]
    txn = txns[0]
    assert txn.grand_total == Decimal("3.26")
    assert txn.lines[0].name == "Coffee"
    assert txn.lines[0].line_total == Decimal("3.0")
    assert txn.tenders[0].method == "cash"
    assert txn.change_due == Decimal("1.74")


def test_history_query_error_becomes_persistence_failure():
    db = MagicMock()
    query = db.collection.return_value
    query.where.return_value = query
    query.order_by.return_value = query
    query.limit.return_value = query
    query.stream.side_effect = ServiceUnavailable("down")
    with pytest.raises(PersistenceFailure):
        SaleRepository("owner-1", db=db).list_transactions()


def test_history_query_is_newest_first_within_range():
    db = _history_db(transactions=[], items=[], payments=[])
    start, end = FIXED_NOW - timedelta(days=1), FIXED_NOW

    SaleRepository("owner-1", db=db).list_transactions(start=start, end=end, limit=50)

    query = db.collection("transactions")
    filters = [c.kwargs["filter"] for c in query.where.call_args_list]
    assert [(f.field_path, f.op_string, f.value) for f in filters] == [
        ("userId", "==", "owner-1"),
        ("createdAt", ">=", start),
        ("createdAt", "<=", end),
    ]
    query.order_by.assert_called_once_with("createdAt", direction=gcf.Query.DESCENDING)
    query.limit.assert_called_once_with(50)


def test_null_fields_skip_only_that_transaction():
    db = _history_db(
        transactions=[
            Snap("good", {"userId": "owner-1", "total": 1.5, "createdAt": FIXED_NOW}),
            Snap("bad", {"userId": "owner-1", "total": 2.0, "itemCount": None, "createdAt": FIXED_NOW}),
        ],
        items=[Snap("l1", {"transactionId": "good", "itemId": "a", "itemName": "Coffee", "quantity": 1, "price": 1.5})],
        payments=[],
    )

    txns = SaleRepository("owner-1", db=db).list_transactions()

    assert [t.transaction_id for t in txns] == ["good"]
