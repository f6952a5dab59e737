"""
Unit tests for cart pricing (reducer and CartSession).
"""

import json
import time
from decimal import Decimal

import pytest

from shopsmart.services.cart_service import (
    AddItem, CartLine, CartSession, ClearCart, ProductSnapshot, RemoveItem,
    UpdateQuantity, cart_savings, cart_total, item_count, reduce_cart
)
from shopsmart.services.session_storage import MemoryStorage


def make_product(product_id=1, price='100', sale_price='80', is_on_sale=True, remaining=2):
    return ProductSnapshot(
        id=product_id,
        price=Decimal(price),
        sale_price=Decimal(sale_price) if sale_price is not None else None,
        is_on_sale=is_on_sale,
        on_sale_quantity_remaining=remaining,
        name=f'Product {product_id}'
    )


def lines_for(lines, product_id):
    return [line for line in lines if line.product_id == product_id]


def bucket(lines, product_id, is_sale_priced):
    matches = [l for l in lines if l.product_id == product_id and l.is_sale_priced == is_sale_priced]
    assert len(matches) <= 1
    return matches[0] if matches else None


class TestAddToCart:
    """Sale allocation and fall-through to regular price."""

    def test_three_adds_with_two_sale_units(self):
        """price=100, salePrice=80, two sale units, three adds -> 80*2 + 100*1."""
        product = make_product()
        lines = []
        for _ in range(3):
            lines = reduce_cart(lines, AddItem(product))

        sale_line = bucket(lines, 1, True)
        regular_line = bucket(lines, 1, False)
        assert sale_line.unit_price == Decimal('80')
        assert sale_line.quantity == 2
        assert regular_line.unit_price == Decimal('100')
        assert regular_line.quantity == 1
        assert cart_total(lines) == Decimal('260')

    @pytest.mark.parametrize('remaining', [1, 2, 5])
    def test_sale_line_never_exceeds_remaining(self, remaining):
        product = make_product(remaining=remaining)
        lines = []
        for adds in range(1, remaining + 4):
            lines = reduce_cart(lines, AddItem(product))
            sale_line = bucket(lines, 1, True)
            assert sale_line.quantity <= remaining
            regular_line = bucket(lines, 1, False)
            if adds <= remaining:
                assert regular_line is None
            else:
                assert regular_line.quantity == adds - remaining

    def test_quantity_argument_matches_repeated_single_adds(self):
        product = make_product(remaining=2)
        bulk = reduce_cart([], AddItem(product, quantity=5))

        single = []
        for _ in range(5):
            single = reduce_cart(single, AddItem(product))

        assert bulk == single
        assert bucket(bulk, 1, True).quantity == 2
        assert bucket(bulk, 1, False).quantity == 3
        assert item_count(bulk) == 5

    def test_large_quantity_is_allocated_in_one_step(self):
        started = time.perf_counter()
        lines = reduce_cart([], AddItem(make_product(remaining=2), quantity=2_000_000))
        elapsed = time.perf_counter() - started

        assert [(l.is_sale_priced, l.quantity) for l in lines] == [(True, 2), (False, 1_999_998)]
        assert elapsed < 1

    def test_bulk_add_tops_up_partial_sale_line(self):
        product = make_product(remaining=3)
        lines = reduce_cart([], AddItem(product))

        lines = reduce_cart(lines, AddItem(product, quantity=4))

        assert bucket(lines, 1, True).quantity == 3
        assert bucket(lines, 1, False).quantity == 2

    def test_bulk_add_with_full_sale_line_goes_to_regular(self):
        product = make_product(remaining=1)
        lines = reduce_cart([], AddItem(product))

        lines = reduce_cart(lines, AddItem(product, quantity=3))

        assert bucket(lines, 1, True).quantity == 1
        assert bucket(lines, 1, False).quantity == 3

    def test_zero_quantity_add_is_noop(self):
        assert reduce_cart([], AddItem(make_product(), quantity=0)) == []

    def test_not_on_sale_uses_regular_price(self):
        product = make_product(is_on_sale=False)
        lines = reduce_cart(reduce_cart([], AddItem(product)), AddItem(product))

        assert len(lines) == 1
        assert lines[0].is_sale_priced is False
        assert lines[0].unit_price == Decimal('100')
        assert lines[0].quantity == 2

    def test_on_sale_without_remaining_units_uses_regular_price(self):
        lines = reduce_cart([], AddItem(make_product(remaining=0)))

        assert lines[0].is_sale_priced is False
        assert lines[0].unit_price == Decimal('100')

    def test_on_sale_without_sale_price_uses_regular_price(self):
        lines = reduce_cart([], AddItem(make_product(sale_price=None)))

        assert lines[0].is_sale_priced is False

    def test_at_most_one_line_per_bucket(self):
        product = make_product(remaining=3)
        other = make_product(product_id=2, is_on_sale=False, price='10')
        lines = []
        for _ in range(6):
            lines = reduce_cart(lines, AddItem(product))
            lines = reduce_cart(lines, AddItem(other))

        for product_id in (1, 2):
            sale = [l for l in lines_for(lines, product_id) if l.is_sale_priced]
            regular = [l for l in lines_for(lines, product_id) if not l.is_sale_priced]
            assert len(sale) <= 1
            assert len(regular) <= 1

    def test_unit_price_is_frozen_when_line_is_created(self):
        lines = reduce_cart([], AddItem(make_product(is_on_sale=False, price='100')))
        repriced = make_product(is_on_sale=False, price='120')
        lines = reduce_cart(lines, AddItem(repriced))

        assert lines[0].unit_price == Decimal('100')
        assert lines[0].quantity == 2

    def test_input_lines_are_not_modified(self):
        original = reduce_cart([], AddItem(make_product()))
        snapshot = list(original)

        reduce_cart(original, AddItem(make_product()))

        assert original == snapshot


class TestRemoveAndClear:

    def test_remove_drops_both_buckets(self):
        lines = reduce_cart([], AddItem(make_product(remaining=1), quantity=3))
        lines = reduce_cart(lines, AddItem(make_product(product_id=2, is_on_sale=False)))

        lines = reduce_cart(lines, RemoveItem(1))

        assert lines_for(lines, 1) == []
        assert cart_total(lines) == Decimal('100')

    def test_remove_unknown_product_is_noop(self):
        lines = reduce_cart([], AddItem(make_product()))

        assert reduce_cart(lines, RemoveItem(99)) == lines

    def test_clear_empties_cart_and_zeroes_total(self):
        lines = reduce_cart([], AddItem(make_product(), quantity=4))

        lines = reduce_cart(lines, ClearCart())

        assert lines == []
        assert cart_total(lines) == Decimal('0')


class TestUpdateQuantity:

    def test_zero_removes_every_line_of_product(self):
        lines = reduce_cart([], AddItem(make_product(remaining=1), quantity=2))

        lines = reduce_cart(lines, UpdateQuantity(1, 0))

        assert lines == []

    def test_negative_quantity_removes_product(self):
        lines = reduce_cart([], AddItem(make_product()))

        assert reduce_cart(lines, UpdateQuantity(1, -3)) == []

    def test_targets_only_line_when_one_bucket(self):
        lines = reduce_cart([], AddItem(make_product(is_on_sale=False)))

        lines = reduce_cart(lines, UpdateQuantity(1, 4))

        assert lines[0].quantity == 4
        assert cart_total(lines) == Decimal('400')

    def test_without_bucket_targets_regular_line_when_both_exist(self):
        lines = reduce_cart([], AddItem(make_product(remaining=2), quantity=3))

        lines = reduce_cart(lines, UpdateQuantity(1, 5))

        assert bucket(lines, 1, True).quantity == 2
        assert bucket(lines, 1, False).quantity == 5

    def test_explicit_sale_bucket(self):
        lines = reduce_cart([], AddItem(make_product(remaining=2), quantity=3))

        lines = reduce_cart(lines, UpdateQuantity(1, 1, is_sale_priced=True))

        assert bucket(lines, 1, True).quantity == 1
        assert bucket(lines, 1, False).quantity == 1

    def test_sale_bucket_above_cap_spills_into_regular_line(self):
        lines = reduce_cart([], AddItem(make_product(remaining=2), quantity=1))

        lines = reduce_cart(lines, UpdateQuantity(1, 5, is_sale_priced=True))

        assert bucket(lines, 1, True).quantity == 2
        assert bucket(lines, 1, False).quantity == 3
        assert bucket(lines, 1, False).unit_price == Decimal('100')
        assert cart_total(lines) == Decimal('460')

    def test_missing_bucket_is_noop(self):
        lines = reduce_cart([], AddItem(make_product(is_on_sale=False)))

        assert reduce_cart(lines, UpdateQuantity(1, 3, is_sale_priced=True)) == lines

    def test_unknown_product_is_noop(self):
        lines = reduce_cart([], AddItem(make_product()))

        assert reduce_cart(lines, UpdateQuantity(42, 3)) == lines


class TestTotals:

    def test_total_matches_sum_of_lines_after_every_operation(self):
        product = make_product(remaining=2)
        other = make_product(product_id=2, price='19.99', is_on_sale=False)
        commands = [
            AddItem(product), AddItem(other), AddItem(product), AddItem(product),
            UpdateQuantity(2, 3), RemoveItem(1), AddItem(product, 4), ClearCart(),
        ]
        lines = []
        for command in commands:
            lines = reduce_cart(lines, command)
            assert cart_total(lines) == sum((l.unit_price * l.quantity for l in lines), Decimal('0'))

        assert cart_total(lines) == Decimal('0')

    def test_savings(self):
        lines = reduce_cart([], AddItem(make_product(remaining=2), quantity=3))

        assert cart_savings(lines) == Decimal('40')

    def test_unknown_command_leaves_cart_unchanged(self):
        lines = reduce_cart([], AddItem(make_product()))

        assert reduce_cart(lines, object()) == lines


class TestCartLineSerialization:

    def test_from_dict_restores_line(self):
        line = CartLine(product_id=3, unit_price=Decimal('9.99'), is_sale_priced=True,
                        quantity=2, list_price=Decimal('12.50'), sale_cap=4, name='Mug')

        restored = CartLine.from_dict(json.loads(json.dumps(line.to_dict())))

        assert restored == line
        assert line.to_dict()['subtotal'] == '19.98'

    def test_snapshot_from_catalog_json(self):
        snapshot = ProductSnapshot.from_dict({
            'id': 7, 'price': 199.99, 'salePrice': 149.99, 'isOnSale': True, 'onSaleQuantity': 5
        })

        assert snapshot.price == Decimal('199.99')
        assert snapshot.sale_price == Decimal('149.99')
        assert snapshot.on_sale_quantity_remaining == 5
        assert snapshot.sale_available is True


class TestCartSession:

    def test_persists_after_each_command(self):
        storage = MemoryStorage()
        cart = CartSession(storage)

        cart.add_to_cart(make_product(), 3)

        restored = CartSession(storage)
        assert restored.items == cart.items
        assert restored.cart_total == Decimal('260')
        assert restored.item_count == 3

    def test_empty_cart_removes_storage_key(self):
        storage = MemoryStorage()
        cart = CartSession(storage)
        cart.add_to_cart(make_product())

        cart.clear_cart()

        assert storage.get('cart') is None

    def test_unreadable_state_starts_empty(self):
        storage = MemoryStorage({'cart': '{not json'})

        cart = CartSession(storage)

        assert cart.items == []
        assert storage.get('cart') is None

    def test_custom_key(self):
        storage = MemoryStorage()
        CartSession(storage, key='guest-cart').add_to_cart(make_product())

        assert storage.get('guest-cart') is not None
        assert storage.get('cart') is None

    def test_close_forgets_everything(self):
        storage = MemoryStorage()
        cart = CartSession(storage)
        cart.add_to_cart(make_product())

        cart.close()

        assert cart.items == []
        assert CartSession(storage).items == []

    def test_to_dict(self):
        cart = CartSession(MemoryStorage())
        cart.add_to_cart(make_product(), 3)

        data = cart.to_dict()

        assert data['itemCount'] == 3
        assert data['total'] == '260'
        assert data['savings'] == '40'
        assert len(data['items']) == 2
