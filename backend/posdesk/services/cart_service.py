# Overview: Transient POS cart and the per-session registry that holds it.

"""
POS Cart

A cart lives only in process memory for the duration of a POS session. It is
keyed by product id, snapshots name and unit price when a product is first
added, and is discarded on checkout, explicit clear, logout, or once its
session ends (revoked, expired or idle).

States: EMPTY -> POPULATED -> CHECKING_OUT -> (cleared) EMPTY
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, replace

from flask import current_app

STATE_EMPTY = "empty"
STATE_POPULATED = "populated"
STATE_CHECKING_OUT = "checking_out"


class CartError(Exception):
    """Raised for cart operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class CartItem:
    product_id: int
    name: str
    unit_price_cents: int
    quantity: int = 1

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }


class Cart:
    """
    Lines keyed by product id.

    Every read and write goes through `_lock`. Carts handed out by a
    CartRegistry share the registry lock, so an edit cannot interleave with
    the registry flipping the cart into CHECKING_OUT.
    """

    def __init__(self, lock: threading.Lock | None = None):
        self._lock = lock or threading.Lock()
        self._items: dict[int, CartItem] = {}
        self.checkout_in_flight = False

    @property
    def items(self) -> list[CartItem]:
        """Copies of the current lines, in the order they were added."""
        with self._lock:
            return [replace(item) for item in self._items.values()]

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    @property
    def state(self) -> str:
        if self.checkout_in_flight:
            return STATE_CHECKING_OUT
        return STATE_EMPTY if self.is_empty else STATE_POPULATED

    @property
    def total_cents(self) -> int:
        return sum(item.line_total_cents for item in self.items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def get(self, product_id: int) -> CartItem | None:
        with self._lock:
            return self._items.get(product_id)

    def _ensure_editable(self) -> None:
        if self.checkout_in_flight:
            raise CartError("Checkout in progress; cart cannot be changed")

    def add(self, product_id: int, name: str, unit_price_cents: int, quantity: int = 1) -> CartItem:
        """Insert a new line or increment an existing one."""
        if quantity <= 0:
            raise CartError("quantity must be > 0")
        with self._lock:
            self._ensure_editable()
            item = self._items.get(product_id)
            if item is None:
                item = CartItem(product_id=product_id, name=name, unit_price_cents=unit_price_cents, quantity=quantity)
                self._items[product_id] = item
            else:
                item.quantity += quantity
            return item

    def decrement(self, product_id: int) -> CartItem | None:
        """Remove one unit. Returns None once the last unit is gone."""
        with self._lock:
            self._ensure_editable()
            item = self._items.get(product_id)
            if item is None:
                raise CartError("Product is not in the cart")
            if item.quantity <= 1:
                del self._items[product_id]
                return None
            item.quantity -= 1
            return item

    def set_quantity(self, product_id: int, quantity: int) -> CartItem | None:
        """Quantities of zero or less remove the line."""
        with self._lock:
            self._ensure_editable()
            item = self._items.get(product_id)
            if item is None:
                raise CartError("Product is not in the cart")
            if quantity <= 0:
                del self._items[product_id]
                return None
            item.quantity = quantity
            return item

    def remove(self, product_id: int) -> None:
        with self._lock:
            self._ensure_editable()
            if self._items.pop(product_id, None) is None:
                raise CartError("Product is not in the cart")

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def empty(self) -> None:
        """Clear on request from the POS screen; refused while checking out."""
        with self._lock:
            self._ensure_editable()
            self._items.clear()

    def to_dict(self) -> dict:
        items = self.items
        return {
            "state": self.state,
            "items": [item.to_dict() for item in items],
            "item_count": sum(item.quantity for item in items),
            "total_cents": sum(item.line_total_cents for item in items),
        }


class CartRegistry:
    """
    Process-local carts keyed by session id.

    The registry lock guards the mapping, the in-flight flag and the carts
    themselves, so two concurrent checkout requests for the same cart cannot
    both proceed and no edit lands mid-checkout.

    With `idle_ttl` (seconds) set, carts nobody touched for that long are
    dropped on the next `get`; their sessions have timed out by then.
    """

    def __init__(self, idle_ttl: float | None = None):
        self._lock = threading.Lock()
        self._carts: dict[int, Cart] = {}
        self._touched: dict[int, float] = {}
        self.idle_ttl = idle_ttl

    def _evict_idle(self, now: float) -> None:
        if self.idle_ttl is None:
            return
        stale = [
            key for key, touched in self._touched.items()
            if now - touched > self.idle_ttl and not self._carts[key].checkout_in_flight
        ]
        for key in stale:
            self._drop(key)

    def _drop(self, key: int) -> None:
        self._carts.pop(key, None)
        self._touched.pop(key, None)

    def get(self, key: int) -> Cart:
        now = time.monotonic()
        with self._lock:
            self._evict_idle(now)
            cart = self._carts.get(key)
            if cart is None:
                cart = Cart(self._lock)
                self._carts[key] = cart
            self._touched[key] = now
            return cart

    def discard(self, key: int) -> None:
        with self._lock:
            self._drop(key)

    def retain(self, keys) -> int:
        """Drop every cart whose key is not in `keys`. Returns how many went."""
        keep = set(keys)
        with self._lock:
            gone = [key for key in self._carts if key not in keep]
            for key in gone:
                self._drop(key)
        return len(gone)

    def __len__(self) -> int:
        with self._lock:
            return len(self._carts)

    @contextmanager
    def checkout(self, key: int):
        """
        Hold the cart in CHECKING_OUT for the duration of the block.

        Raises CartError when the cart is empty or already checking out.
        """
        with self._lock:
            cart = self._carts.get(key)
            # cart.is_empty would take the lock again
            if cart is None or not cart._items:
                raise CartError("Cart is empty")
            if cart.checkout_in_flight:
                raise CartError("A checkout for this cart is already in progress")
            cart.checkout_in_flight = True
        try:
            yield cart
        finally:
            with self._lock:
                cart.checkout_in_flight = False


def get_cart_registry() -> CartRegistry:
    return current_app.extensions["posdesk.cart_registry"]
