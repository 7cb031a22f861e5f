import pytest

from grocery.pipelines.cart import CartLine, add_to_cart, summarize_cart

from conftest import make_product


def test_add_to_cart_bumps_existing_line():
    milk = make_product("1", "Milk", price="$3.49")
    lines = add_to_cart([], milk)
    add_to_cart(lines, milk, 2)

    assert len(lines) == 1
    assert lines[0].quantity == 3


def test_add_to_cart_rejects_non_positive_quantity():
    with pytest.raises(ValueError):
        add_to_cart([], make_product("1", "Milk"), 0)


def test_summary_merges_without_mutating_input():
    milk = make_product("1", "Milk", price="$2.00")
    lines = [CartLine(milk, 1), CartLine(milk, 1)]

    summary = summarize_cart(lines, tax_rate=0.1)

    assert [line.quantity for line in lines] == [1, 1]
    assert summary.item_count == 2
    assert summary.subtotal == 4.0
    assert summary.tax == 0.4
    assert summary.total == 4.4


def test_unpriced_items_count_as_zero():
    summary = summarize_cart([CartLine(make_product("1", "Mystery", price="Price not available"), 2)], tax_rate=0.0)
    assert summary.subtotal == 0.0
    assert summary.lines[0].line_total == 0.0
