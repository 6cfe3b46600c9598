import logging
from fastapi import FastAPI
from storefront.version import VERSION
from storefront.api import admin, auth, cart, orders, products, users
from storefront.core.errors import register_exception_handlers
from storefront.core.logging import configure_logging
from storefront.kafka import consumer as payment_consumer
from prometheus_fastapi_instrumentator import Instrumentator

configure_logging()
logger = logging.getLogger(__name__)

# Create instrumentator first
instrumentator = Instrumentator()

app = FastAPI(title="Storefront Service", version=VERSION)

# Instrument the app BEFORE adding routes or middleware
instrumentator.instrument(app).expose(
    app,
    include_in_schema=False,
    endpoint="/metrics",
    should_gzip=True,
)

register_exception_handlers(app)

@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/v1/_info")
def info():
    return {"service": "storefront", "version": VERSION}

@app.on_event("startup")
async def startup_event():
    for route in app.routes:
        if hasattr(route, "methods") and hasattr(route, "path"):
            logger.debug("%s %s", sorted(route.methods), route.path)
    # payment callbacks
    payment_consumer.start()

@app.on_event("shutdown")
async def shutdown_event():
    payment_consumer.stop()

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(products.router, prefix="/v1/products", tags=["products"])
app.include_router(cart.router, prefix="/v1/cart", tags=["cart"])
app.include_router(orders.router, prefix="/v1/orders", tags=["orders"])
app.include_router(admin.router, prefix="/admin/v1", tags=["admin"])
