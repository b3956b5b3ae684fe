"""Pieces shared by the storefront and admin apps."""
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import DocumentStore, StorageReadError, get_store, init_storage, PRODUCTS
from repositories import BookingRepository, CartRepository, ProductRepository
from schemas import Cart, Error, Message

logger = logging.getLogger(__name__)


# ---------- Dependencies ----------

def get_products(store: DocumentStore = Depends(get_store)) -> ProductRepository:
    return ProductRepository(store)


def get_bookings(store: DocumentStore = Depends(get_store)) -> BookingRepository:
    return BookingRepository(store)


def get_carts(store: DocumentStore = Depends(get_store)) -> CartRepository:
    return CartRepository(store)


# ---------- Errors ----------

def error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=Error(error=message).model_dump())


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return error(400, f"Invalid request {loc}: {first.get('msg', 'bad input')}")


async def storage_error_handler(request: Request, exc: StorageReadError):
    return error(500, "Unable to read data.")


# ---------- App factory ----------

def create_app(title: str) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = get_store()
        init_storage(store)
        logger.info("%s storage ready (%s: %s)", title, store.kind, store.location())
        yield

    app = FastAPI(title=title, version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StorageReadError, storage_error_handler)

    @app.get("/")
    def root():
        return {"message": f"{title} running"}

    @app.get("/test")
    def storage_status(store: DocumentStore = Depends(get_store)):
        resp = {
            "backend": "fastapi",
            "storage": store.kind,
            "location": store.location(),
            "connection_status": "ok",
        }
        try:
            catalog = store.load(PRODUCTS)
            resp["categories"] = sorted(catalog) if catalog else []
        except StorageReadError as e:
            resp["connection_status"] = f"error: {str(e.cause)[:80]}"
        return resp

    app.include_router(cart_router)
    return app


# ---------- Carts ----------

cart_router = APIRouter(prefix="/api/cart", tags=["cart"])


@cart_router.get("/{user_id}")
def get_cart(user_id: str, carts: CartRepository = Depends(get_carts)):
    return carts.get(user_id)


@cart_router.post("/checkout/{user_id}", response_model=Message)
def checkout(user_id: str, carts: CartRepository = Depends(get_carts)):
    carts.clear(user_id)
    return Message(message="Checkout complete, cart emptied.")


@cart_router.post("/{user_id}", response_model=Message)
def save_cart(user_id: str, cart: Cart, carts: CartRepository = Depends(get_carts)):
    carts.save(user_id, cart.model_dump(exclude_unset=True))
    return Message(message="Cart saved.")


def not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found.")
