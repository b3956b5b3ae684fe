import logging
import os

from fastapi import Depends, HTTPException

from api import create_app, get_bookings, get_products, not_found
from database import LOG_LEVEL, StorageReadError
from repositories import BookingRepository, ProductRepository
from schemas import BookingIn, Message, ProductIn

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = create_app("Comic Shop Storefront API")


# ============== PRODUCTS ==================
@app.get("/api/products/all")
def list_products(products: ProductRepository = Depends(get_products)):
    return products.all()


@app.get("/api/products/{category}/{product_id}")
def get_product(category: str, product_id: str, products: ProductRepository = Depends(get_products)):
    found_category, product = products.find_in_category(category, product_id)
    if not found_category:
        raise not_found("Category or product")
    if product is None:
        raise not_found("Product")
    return product


@app.post("/api/products", status_code=201, response_model=Message)
def add_product(body: ProductIn, products: ProductRepository = Depends(get_products)):
    fields = body.model_dump(exclude_unset=True)
    category = fields.pop("category", None)
    if not category:
        raise HTTPException(status_code=400, detail="Category is required.")
    product = products.add_to_category(category, fields)
    logger.info("Added product %s to %s", product["id"], category)
    return Message(message="Product added.")


@app.delete("/api/products/{category}/{product_id}", response_model=Message)
def delete_product(category: str, product_id: str, products: ProductRepository = Depends(get_products)):
    removed = products.delete_from_category(category, product_id)
    if removed is None:
        raise not_found("Category or product")
    if not removed:
        raise not_found("Product")
    return Message(message="Product deleted.")


# ============== BOOKINGS ==================
@app.get("/api/bookings/available")
def list_bookings(bookings: BookingRepository = Depends(get_bookings)):
    try:
        return bookings.all()
    except StorageReadError:
        return []


@app.post("/api/bookings/add", status_code=201, response_model=Message)
def add_booking(body: BookingIn, bookings: BookingRepository = Depends(get_bookings)):
    bookings.add(body.model_dump(exclude_unset=True))
    return Message(message="Booking added.")


@app.delete("/api/bookings/cancel/{table_id}/{date}/{time}", response_model=Message)
def cancel_booking(table_id: str, date: str, time: str, bookings: BookingRepository = Depends(get_bookings)):
    if not bookings.cancel(table_id, date, time):
        raise not_found("Booking")
    return Message(message="Booking cancelled.")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
