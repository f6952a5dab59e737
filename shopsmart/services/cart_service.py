"""
Shopping cart pricing.

A cart is a list of CartLine objects. Each product can appear on at most two
lines: one priced at its sale price and one at its regular price. Sale units
are limited by the product's on_sale_quantity_remaining; once the sale line
reaches that cap further units go to the regular-priced line instead of
being rejected.

reduce_cart() is a pure transition function over the command dataclasses
below. CartSession wraps it with persistence through a KeyValueStorage.
"""
import json
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Union

from shopsmart.metrics import cart_operations_total
from shopsmart.services.session_storage import KeyValueStorage

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class ProductSnapshot:
    """Sale-relevant view of a catalog product, as fetched by the caller."""

    id: int
    price: Decimal
    sale_price: Optional[Decimal] = None
    is_on_sale: bool = False
    on_sale_quantity_remaining: int = 0
    name: Optional[str] = None
    image: Optional[str] = None

    @property
    def sale_available(self) -> bool:
        return (
            self.is_on_sale
            and self.sale_price is not None
            and self.on_sale_quantity_remaining > 0
        )

    @classmethod
    def from_dict(cls, data: Dict) -> 'ProductSnapshot':
        """Build a snapshot from catalog JSON (camelCase keys)."""
        return cls(
            id=int(data['id']),
            price=_to_decimal(data['price']),
            sale_price=_to_decimal(data.get('salePrice')),
            is_on_sale=bool(data.get('isOnSale')),
            on_sale_quantity_remaining=int(data.get('onSaleQuantity') or 0),
            name=data.get('name'),
            image=data.get('image')
        )


@dataclass(frozen=True)
class CartLine:
    """
    One pricing bucket of one product.

    unit_price is fixed when the line is created. list_price is the
    product's regular price, kept on both buckets so a sale line can spill
    into a regular line. sale_cap is the on_sale_quantity_remaining seen at
    the last add (sale lines only).
    """

    product_id: int
    unit_price: Decimal
    is_sale_priced: bool
    quantity: int
    list_price: Decimal
    sale_cap: Optional[int] = None
    name: Optional[str] = None
    image: Optional[str] = None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def savings(self) -> Decimal:
        return (self.list_price - self.unit_price) * self.quantity

    def to_dict(self) -> Dict:
        return {
            'productId': self.product_id,
            'unitPrice': str(self.unit_price),
            'isSalePriced': self.is_sale_priced,
            'quantity': self.quantity,
            'listPrice': str(self.list_price),
            'saleCap': self.sale_cap,
            'name': self.name,
            'image': self.image,
            'subtotal': str(self.subtotal),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'CartLine':
        return cls(
            product_id=int(data['productId']),
            unit_price=_to_decimal(data['unitPrice']),
            is_sale_priced=bool(data['isSalePriced']),
            quantity=int(data['quantity']),
            list_price=_to_decimal(data.get('listPrice', data['unitPrice'])),
            sale_cap=data.get('saleCap'),
            name=data.get('name'),
            image=data.get('image')
        )


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class AddItem:
    product: ProductSnapshot
    quantity: int = 1


@dataclass(frozen=True)
class RemoveItem:
    product_id: int


@dataclass(frozen=True)
class UpdateQuantity:
    """
    Set the quantity of one bucket.

    is_sale_priced=None targets the product's only line, or its regular
    line when both buckets exist.
    """
    product_id: int
    quantity: int
    is_sale_priced: Optional[bool] = None


@dataclass(frozen=True)
class ClearCart:
    pass


CartCommand = Union[AddItem, RemoveItem, UpdateQuantity, ClearCart]


# ----------------------------------------------------------------------
# Reducer
# ----------------------------------------------------------------------

def _find_line(lines: Sequence[CartLine], product_id: int, is_sale_priced: bool) -> Optional[CartLine]:
    for line in lines:
        if line.product_id == product_id and line.is_sale_priced == is_sale_priced:
            return line
    return None


def _swap(lines: Sequence[CartLine], old: CartLine, new: CartLine) -> List[CartLine]:
    return [new if line is old else line for line in lines]


def _add_to_regular(lines: List[CartLine], product_id: int, list_price: Decimal,
                    quantity: int, name: Optional[str], image: Optional[str]) -> List[CartLine]:
    regular_line = _find_line(lines, product_id, False)
    if regular_line is not None:
        return _swap(lines, regular_line, replace(regular_line, quantity=regular_line.quantity + quantity))
    return lines + [CartLine(
        product_id=product_id,
        unit_price=list_price,
        is_sale_priced=False,
        quantity=quantity,
        list_price=list_price,
        name=name,
        image=image
    )]


def _add_units(lines: List[CartLine], product: ProductSnapshot, quantity: int) -> List[CartLine]:
    if quantity < 1:
        return lines

    if product.sale_available:
        cap = product.on_sale_quantity_remaining
        sale_line = _find_line(lines, product.id, True)
        held = sale_line.quantity if sale_line is not None else 0
        sale_units = min(quantity, max(cap - held, 0))

        if sale_units and sale_line is None:
            lines = lines + [CartLine(
                product_id=product.id,
                unit_price=product.sale_price,
                is_sale_priced=True,
                quantity=sale_units,
                list_price=product.price,
                sale_cap=cap,
                name=product.name,
                image=product.image
            )]
        elif sale_units:
            lines = _swap(lines, sale_line, replace(sale_line, quantity=held + sale_units, sale_cap=cap))

        quantity -= sale_units
        if quantity == 0:
            return lines
        # Sale allocation exhausted: the remaining units are priced regularly

    return _add_to_regular(lines, product.id, product.price, quantity, product.name, product.image)


def _select_target(lines: Sequence[CartLine], product_id: int,
                   is_sale_priced: Optional[bool]) -> Optional[CartLine]:
    if is_sale_priced is not None:
        return _find_line(lines, product_id, is_sale_priced)
    return _find_line(lines, product_id, False) or _find_line(lines, product_id, True)


def _update_quantity(lines: List[CartLine], command: UpdateQuantity) -> List[CartLine]:
    if command.quantity < 1:
        return _remove(lines, command.product_id)

    target = _select_target(lines, command.product_id, command.is_sale_priced)
    if target is None:
        return lines

    cap = target.sale_cap
    if not target.is_sale_priced or cap is None or command.quantity <= cap:
        return _swap(lines, target, replace(target, quantity=command.quantity))

    excess = command.quantity - cap
    lines = _swap(lines, target, replace(target, quantity=cap))
    return _add_to_regular(lines, target.product_id, target.list_price, excess, target.name, target.image)


def _remove(lines: Sequence[CartLine], product_id: int) -> List[CartLine]:
    return [line for line in lines if line.product_id != product_id]


def reduce_cart(lines: Sequence[CartLine], command: CartCommand) -> List[CartLine]:
    """
    Apply one command to a cart and return the new list of lines.

    The input sequence is never modified. Unknown commands leave the cart
    unchanged.
    """
    lines = list(lines)

    if isinstance(command, AddItem):
        return _add_units(lines, command.product, command.quantity)

    if isinstance(command, RemoveItem):
        return _remove(lines, command.product_id)

    if isinstance(command, UpdateQuantity):
        return _update_quantity(lines, command)

    if isinstance(command, ClearCart):
        return []

    logger.warning(f"[CART] Ignoring unknown cart command: {command!r}")
    return lines


def cart_total(lines: Sequence[CartLine]) -> Decimal:
    """Sum of unit_price * quantity over all lines."""
    return sum((line.subtotal for line in lines), Decimal('0'))


def cart_savings(lines: Sequence[CartLine]) -> Decimal:
    return sum((line.savings for line in lines), Decimal('0'))


def item_count(lines: Sequence[CartLine]) -> int:
    return sum(line.quantity for line in lines)


# ----------------------------------------------------------------------
# State container
# ----------------------------------------------------------------------

class CartSession:
    """
    Cart state for one shopper.

    Starts from whatever the storage holds under `key` (an empty cart when
    nothing or something unreadable is stored), persists after every
    command, and forgets everything on close().
    """

    def __init__(self, storage: KeyValueStorage, key: str = 'cart'):
        self._storage = storage
        self._key = key
        self._lines: List[CartLine] = self._load()

    def _load(self) -> List[CartLine]:
        raw = self._storage.get(self._key)
        if not raw:
            return []
        try:
            return [CartLine.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"[CART] Discarding unreadable cart state: {e}")
            self._storage.remove(self._key)
            return []

    def _save(self) -> None:
        if self._lines:
            self._storage.set(self._key, json.dumps([line.to_dict() for line in self._lines]))
        else:
            self._storage.remove(self._key)

    def dispatch(self, command: CartCommand) -> List[CartLine]:
        self._lines = reduce_cart(self._lines, command)
        self._save()
        cart_operations_total.labels(operation=type(command).__name__).inc()
        return self.items

    def add_to_cart(self, product: ProductSnapshot, quantity: int = 1) -> List[CartLine]:
        return self.dispatch(AddItem(product, quantity))

    def remove_from_cart(self, product_id: int) -> List[CartLine]:
        return self.dispatch(RemoveItem(product_id))

    def update_quantity(self, product_id: int, quantity: int,
                        is_sale_priced: Optional[bool] = None) -> List[CartLine]:
        return self.dispatch(UpdateQuantity(product_id, quantity, is_sale_priced))

    def clear_cart(self) -> List[CartLine]:
        return self.dispatch(ClearCart())

    def close(self) -> None:
        """End of session: drop in-memory and persisted state."""
        self._lines = []
        self._storage.remove(self._key)

    @property
    def items(self) -> List[CartLine]:
        return list(self._lines)

    @property
    def cart_total(self) -> Decimal:
        return cart_total(self._lines)

    @property
    def item_count(self) -> int:
        return item_count(self._lines)

    def to_dict(self) -> Dict:
        return {
            'items': [line.to_dict() for line in self._lines],
            'itemCount': self.item_count,
            'total': str(self.cart_total),
            'savings': str(cart_savings(self._lines)),
        }
