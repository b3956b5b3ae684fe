"""
Repositories over a DocumentStore.

Each public method is one read-decide-write cycle held under the lock of
the document it touches. Writes are best-effort: a failed save is logged
by the store and the in-memory result is still returned.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from database import (
    BOOKINGS, PRODUCTS, DocumentStore, StorageReadError, cart_key, new_product_id,
)

logger = logging.getLogger(__name__)

UNCATEGORIZED = "uncategorized"

Catalog = Dict[str, List[Dict[str, Any]]]


def loose_eq(a: Any, b: Any) -> bool:
    """Compare ids that may arrive as int in JSON and as str in a path."""
    return a is not None and b is not None and str(a) == str(b)


# ---------- Products ----------

class ProductRepository:
    def __init__(self, store: DocumentStore, id_factory: Callable[[], int] = new_product_id):
        self.store = store
        self.new_id = id_factory

    def _catalog(self) -> Catalog:
        catalog = self.store.load(PRODUCTS)
        if catalog is None:
            raise StorageReadError(PRODUCTS, LookupError("document missing"))
        return catalog

    def all(self) -> Catalog:
        return self._catalog()

    def find_in_category(self, category: str, product_id: str) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """Returns (category exists, product or None)."""
        catalog = self._catalog()
        if category not in catalog:
            return False, None
        for p in catalog[category]:
            if loose_eq(p.get("id"), product_id):
                return True, p
        return True, None

    def find(self, product_id: int) -> Optional[Dict[str, Any]]:
        for products in self._catalog().values():
            for p in products:
                if p.get("id") == product_id:
                    return p
        return None

    def add_to_category(self, category: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Append a product to a bucket without storing the category on it."""
        with self.store.lock(PRODUCTS):
            catalog = self._catalog()
            product = {**fields, "id": self.new_id()}
            product.pop("category", None)
            catalog.setdefault(category, []).append(product)
            self.store.save(PRODUCTS, catalog)
        return product

    def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        category = fields.get("category") or UNCATEGORIZED
        with self.store.lock(PRODUCTS):
            catalog = self._catalog()
            product = {**fields, "category": category, "id": self.new_id()}
            catalog.setdefault(category, []).append(product)
            self.store.save(PRODUCTS, catalog)
        return product

    def update(self, product_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Replace a product; a changed category moves it to the end of the new bucket."""
        with self.store.lock(PRODUCTS):
            catalog = self._catalog()
            for category, products in catalog.items():
                for idx, p in enumerate(products):
                    if p.get("id") != product_id:
                        continue
                    current = p.get("category", category)
                    target = fields.get("category") or current
                    updated = {**fields, "category": target, "id": product_id}
                    if target != category:
                        del products[idx]
                        catalog.setdefault(target, []).append(updated)
                    else:
                        products[idx] = updated
                    self.store.save(PRODUCTS, catalog)
                    return updated
        return None

    def delete_from_category(self, category: str, product_id: str) -> Optional[bool]:
        """None when the category is missing, else whether anything was removed."""
        with self.store.lock(PRODUCTS):
            catalog = self._catalog()
            if category not in catalog:
                return None
            before = len(catalog[category])
            catalog[category] = [p for p in catalog[category] if not loose_eq(p.get("id"), product_id)]
            if len(catalog[category]) == before:
                return False
            self.store.save(PRODUCTS, catalog)
        return True

    def delete(self, product_id: int) -> bool:
        with self.store.lock(PRODUCTS):
            catalog = self._catalog()
            for category, products in catalog.items():
                remaining = [p for p in products if p.get("id") != product_id]
                if len(remaining) < len(products):
                    catalog[category] = remaining
                    self.store.save(PRODUCTS, catalog)
                    return True
        return False


# ---------- Bookings ----------

def booking_end(booking: Dict[str, Any]) -> Optional[datetime]:
    """Local end instant of a booking, or None when it has no endTime."""
    end_time = booking.get("endTime")
    if not end_time:
        return None
    return datetime.strptime(f"{booking.get('date')} {end_time}", "%Y-%m-%d %H:%M")


def is_active(booking: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    try:
        end = booking_end(booking)
    except (TypeError, ValueError):
        # unparseable date or endTime never compares as future
        return False
    return end is None or end > now


def same_slot(booking: Dict[str, Any], table_id: Any, date: Any, time: Any) -> bool:
    return (
        loose_eq(booking.get("tableId"), table_id)
        and booking.get("date") == date
        and booking.get("time") == time
    )


class BookingRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _bookings(self) -> List[Dict[str, Any]]:
        bookings = self.store.load(BOOKINGS)
        if bookings is None:
            raise StorageReadError(BOOKINGS, LookupError("document missing"))
        return bookings

    def all(self) -> List[Dict[str, Any]]:
        return self._bookings()

    def active(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Drop expired bookings and persist the remainder."""
        with self.store.lock(BOOKINGS):
            bookings = self._bookings()
            kept = [b for b in bookings if is_active(b, now)]
            if len(kept) < len(bookings):
                logger.info("Removing %d expired bookings", len(bookings) - len(kept))
            self.store.save(BOOKINGS, kept)
        return kept

    def add(self, booking: Dict[str, Any]) -> Dict[str, Any]:
        with self.store.lock(BOOKINGS):
            bookings = self._bookings()
            bookings.append(booking)
            self.store.save(BOOKINGS, bookings)
        return booking

    def add_unique(self, booking: Dict[str, Any]) -> bool:
        """Append unless the slot is already taken."""
        with self.store.lock(BOOKINGS):
            bookings = self._bookings()
            slot = (booking.get("tableId"), booking.get("date"), booking.get("time"))
            if any(same_slot(b, *slot) for b in bookings):
                return False
            bookings.append(booking)
            self.store.save(BOOKINGS, bookings)
        return True

    def cancel(self, table_id: str, date: str, time: str) -> bool:
        with self.store.lock(BOOKINGS):
            bookings = self._bookings()
            remaining = [b for b in bookings if not same_slot(b, table_id, date, time)]
            if len(remaining) == len(bookings):
                return False
            self.store.save(BOOKINGS, remaining)
        return True


# ---------- Carts ----------

class CartRepository:
    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, user_id: str) -> Any:
        cart = self.store.load(cart_key(user_id))
        if cart is None:
            return {"items": []}
        return cart

    def save(self, user_id: str, body: Any) -> bool:
        key = cart_key(user_id)
        with self.store.lock(key):
            return self.store.save(key, body)

    def clear(self, user_id: str) -> bool:
        return self.save(user_id, {"items": []})
