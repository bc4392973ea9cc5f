import random
from decimal import Decimal

import pytest

from conftest import make_item
from pos.core.errors import EmptyCartError, InsufficientStockError, InvalidDiscountError
from pos.core.money import DiscountType, round_money
from pos.schemas.cart import CartState
from pos.services.cart_engine import AddItem, CartEngine, ClearCart, RemoveItem, SetDiscount, UpdateQuantity


def _cart(engine, *pairs):
    """Cart with (item, quantity) lines in order."""
    state = engine.empty()
    for item, qty in pairs:
        state = engine.add_item(state, item)
        state = engine.update_quantity(state, item.item_id, qty)
    return state


def test_add_new_item_appends_line_with_stock_snapshot(engine, coffee):
    state = engine.add_item(CartState(), coffee)
    assert len(state.lines) == 1
    line = state.lines[0]
    assert line.item_id == "item-1"
    assert line.quantity == 1
    assert line.unit_price == Decimal("1.50")
    assert line.available_stock == 5
    assert state.subtotal == Decimal("1.50")


def test_add_existing_item_increments_quantity(engine, coffee):
    state = engine.add_item(engine.add_item(CartState(), coffee), coffee)
    assert len(state.lines) == 1
    assert state.lines[0].quantity == 2
    assert state.item_count == 2


def test_reduce_never_mutates_input(engine, coffee):
    before = engine.add_item(CartState(), coffee)
    after = engine.reduce(before, AddItem(coffee))
    assert before.lines[0].quantity == 1
    assert after.lines[0].quantity == 2


def test_lines_keep_insertion_order(engine, coffee, bagel):
    state = engine.add_item(engine.add_item(CartState(), bagel), coffee)
    state = engine.add_item(state, bagel)
    assert [line.item_id for line in state.lines] == ["item-2", "item-1"]


def test_remove_absent_item_is_noop(engine, coffee):
    state = engine.add_item(CartState(), coffee)
    assert engine.remove_item(state, "missing") == state


def test_update_quantity_sets_absolute_value(engine, coffee):
    state = engine.update_quantity(engine.add_item(CartState(), coffee), "item-1", 4)
    assert state.lines[0].quantity == 4
    assert state.subtotal == Decimal("6.00")


def test_update_quantity_on_absent_item_is_noop(engine, coffee):
    state = engine.add_item(CartState(), coffee)
    assert engine.update_quantity(state, "missing", 3) == state


@pytest.mark.parametrize("quantity", [0, -1])
def test_update_quantity_to_zero_or_less_equals_remove(engine, coffee, bagel, quantity):
    state = _cart(engine, (coffee, 2), (bagel, 1))
    assert engine.update_quantity(state, "item-1", quantity) == engine.remove_item(state, "item-1")


def test_clear_is_idempotent(engine, coffee):
    state = _cart(engine, (coffee, 2))
    once = engine.clear_cart(state)
    assert engine.clear_cart(once) == once
    assert once.is_empty
    assert once.grand_total == Decimal("0")


def test_clear_also_resets_discount(engine, coffee):
    state = engine.set_discount(_cart(engine, (coffee, 1)), Decimal("10"), DiscountType.PERCENTAGE)
    cleared = engine.reduce(state, ClearCart())
    assert cleared.discount_value == Decimal("0")
    assert cleared.discount_type == DiscountType.AMOUNT


def test_totals_without_discount(engine):
    state = _cart(engine, (make_item("a", price="1.50"), 2), (make_item("b", price="2.25"), 1))
    assert state.subtotal == Decimal("5.25")
    assert state.tax_amount == Decimal("0.44625")
    assert state.grand_total == Decimal("5.69625")
    assert round_money(state.grand_total) == Decimal("5.70")


def test_totals_with_percentage_discount(engine):
    state = _cart(engine, (make_item("a", price="1.50"), 2), (make_item("b", price="2.25"), 1))
    state = engine.set_discount(state, Decimal("10"), DiscountType.PERCENTAGE)
    assert state.discount_amount == Decimal("0.525")
    assert state.discounted_subtotal == Decimal("4.725")
    assert state.tax_amount == Decimal("0.401625")
    assert state.grand_total == Decimal("5.126625")


def test_discount_round_trip_restores_total(engine):
    state = _cart(engine, (make_item("a", price="1.50"), 2), (make_item("b", price="2.25"), 1))
    original = state.grand_total
    state = engine.set_discount(state, Decimal("10"), DiscountType.PERCENTAGE)
    state = engine.set_discount(state, Decimal("0"), DiscountType.AMOUNT)
    assert state.grand_total == original


def test_amount_discount_persists_across_edits(engine, coffee, bagel):
    state = engine.set_discount(_cart(engine, (coffee, 2)), Decimal("1"), DiscountType.AMOUNT)
    state = engine.add_item(state, bagel)
    assert state.discount_amount == Decimal("1")
    assert state.subtotal == Decimal("5.25")
    assert state.grand_total == (Decimal("4.25") * Decimal("1.085"))


def test_negative_discount_is_rejected(engine, coffee):
    with pytest.raises(InvalidDiscountError):
        engine.reduce(_cart(engine, (coffee, 1)), SetDiscount(Decimal("-1")))


def test_unknown_action_is_a_type_error(engine):
    with pytest.raises(TypeError):
        engine.reduce(CartState(), object())


def test_negative_tax_rate_is_rejected():
    with pytest.raises(ValueError):
        CartEngine(Decimal("-0.01"))


def test_subtotal_never_drifts_over_many_operations(engine):
    rng = random.Random(1234)
    items = [make_item(f"sku-{i}", price=str(Decimal(rng.randint(1, 999)) / 100), stock=50) for i in range(8)]
    state = engine.empty()
    for _ in range(250):
        item = rng.choice(items)
        op = rng.randrange(5)
        if op == 0:
            state = engine.reduce(state, AddItem(item))
        elif op == 1:
            state = engine.reduce(state, RemoveItem(item.item_id))
        elif op == 2:
            state = engine.reduce(state, UpdateQuantity(item.item_id, rng.randint(-1, 9)))
        elif op == 3:
            state = engine.reduce(state, SetDiscount(Decimal(rng.randint(0, 30)), rng.choice(list(DiscountType))))
        else:
            state = engine.reduce(state, AddItem(item))
        assert state.subtotal == sum((line.unit_price * line.quantity for line in state.lines), Decimal("0"))
        assert all(line.quantity >= 1 for line in state.lines)
        assert len({line.item_id for line in state.lines}) == len(state.lines)


def test_validate_empty_cart():
    errors = CartEngine.validate_for_checkout(CartState())
    assert len(errors) == 1
    assert isinstance(errors[0], EmptyCartError)


def test_validate_reports_line_over_stock(engine):
    item = make_item("milk", name="Milk", stock=5)
    state = engine.update_quantity(engine.add_item(engine.empty(), item), "milk", 6)
    errors = engine.validate_for_checkout(state)
    assert len(errors) == 1
    assert isinstance(errors[0], InsufficientStockError)
    assert errors[0].item_id == "milk"
    assert errors[0].requested == 6
    assert errors[0].available == 5


def test_validate_lists_every_violation(engine):
    a = make_item("a", stock=1)
    b = make_item("b", stock=1)
    state = _cart(engine, (a, 2), (b, 3))
    assert [e.item_id for e in engine.validate_for_checkout(state)] == ["a", "b"]


def test_validate_passes_within_stock(engine, coffee):
    assert engine.validate_for_checkout(_cart(engine, (coffee, 5))) == []
