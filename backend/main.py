from __future__ import annotations
import logging
import os
import re
from typing import Optional

from fastapi import Depends, HTTPException

from api import create_app, get_bookings, get_products, not_found
from database import LOG_LEVEL
from repositories import BookingRepository, ProductRepository
from schemas import BookingIn, Message, ProductIn

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = create_app("Comic Shop Admin API")


# leading integer, the way parseInt reads it
LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_id(product_id: str) -> Optional[int]:
    m = LEADING_INT.match(product_id)
    return int(m.group(1)) if m else None


# Products
@app.get("/api/products/all")
def list_products(products: ProductRepository = Depends(get_products)):
    return products.all()


@app.get("/api/products/{product_id}")
def get_product(product_id: str, products: ProductRepository = Depends(get_products)):
    pid = parse_id(product_id)
    product = products.find(pid) if pid is not None else None
    if product is None:
        raise not_found("Product")
    return product


@app.post("/api/admin/products", status_code=201)
def create_product(body: ProductIn, products: ProductRepository = Depends(get_products)):
    product = products.create(body.model_dump(exclude_unset=True))
    logger.info("Created product %s in %s", product["id"], product["category"])
    return product


@app.put("/api/admin/products/{product_id}")
def update_product(product_id: str, body: ProductIn, products: ProductRepository = Depends(get_products)):
    pid = parse_id(product_id)
    updated = products.update(pid, body.model_dump(exclude_unset=True)) if pid is not None else None
    if updated is None:
        raise not_found("Product")
    return updated


@app.delete("/api/admin/products/{product_id}", response_model=Message)
def delete_product(product_id: str, products: ProductRepository = Depends(get_products)):
    pid = parse_id(product_id)
    if pid is None or not products.delete(pid):
        raise not_found("Product")
    return Message(message="Product deleted.")


# Bookings
@app.get("/api/bookings")
def list_bookings(bookings: BookingRepository = Depends(get_bookings)):
    return bookings.active()


@app.post("/api/bookings", status_code=201)
def create_booking(body: BookingIn, bookings: BookingRepository = Depends(get_bookings)):
    booking = body.model_dump(exclude_unset=True)
    if not bookings.add_unique(booking):
        raise HTTPException(status_code=409, detail="This table is already booked for that date and time.")
    return booking


@app.delete("/api/bookings/{table_id}/{date}/{time}", response_model=Message)
def cancel_booking(table_id: str, date: str, time: str, bookings: BookingRepository = Depends(get_bookings)):
    if not bookings.cancel(table_id, date, time):
        raise not_found("Booking")
    return Message(message="Booking cancelled.")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8001))
    uvicorn.run(app, host="0.0.0.0", port=port)
