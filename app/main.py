# app/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.error_handlers import register_exception_handlers
from app.api.routers import cart
from app.core.config import settings
from app.core.logging import get_logger, setup_logging
from app.db.session_async import async_engine, init_models
from app.middleware import ObservabilityMiddleware

logger = get_logger("app.main")

# --- Metadatos de la API para la documentación ---
TAGS_METADATA = [
    {"name": "cart", "description": "Carritos de compra: creación, consulta, vaciado y líneas de producto."},
]


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    if settings.CREATE_TABLES_ON_STARTUP:
        await init_models()
    logger.info("Cart service started", extra={"database": async_engine.url.render_as_string(hide_password=True)})
    yield
    await async_engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    description=(
        "API de carritos de compra.\n\n"
        "- **Cart**: crear un carrito con líneas iniciales, consultarlo y vaciarlo.\n"
        "- **Items**: agregar productos (las cantidades se acumulan por producto) y quitar líneas.\n\n"
        "Todos los endpoints de `/cart` requieren un token Bearer."
    ),
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# --- Middlewares ---
app.add_middleware(ObservabilityMiddleware)

# --- Errores de la capa de servicio ---
register_exception_handlers(app)

# --- Routers ---
app.include_router(cart.router, prefix=settings.API_V1_STR)


# --- Endpoint raíz ---
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "docs_url": "/docs"}
