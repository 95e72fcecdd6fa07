from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError

import document_store
from config import get_settings
from database import close_pool, create_pool
from errors import register_exception_handlers
from nosql_routes import router as nosql_router
from sql_routes import router as sql_router

NOSQL_BASE = "/api/nosql/products"
SQL_BASE = "/api/sql/products"

settings = get_settings()

# Configuration logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============ Lifecycle ============
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Ressources de process:
    - MongoDB connecté au démarrage, échec = arrêt du process
    - pool PostgreSQL paresseux, sans health check au démarrage
    """
    try:
        mongo_client = document_store.connect(settings)
        app.state.products_collection = document_store.get_products_collection(mongo_client)
    except PyMongoError as e:
        logger.error(f"[STARTUP] MongoDB connection error: {e}")
        raise SystemExit(1)

    app.state.pg_pool = create_pool(settings)
    logger.info(f"NoSQL API: http://localhost:{settings.port}{NOSQL_BASE}")
    logger.info(f"SQL API: http://localhost:{settings.port}{SQL_BASE}")

    yield

    logger.info("Shutting down...")
    close_pool(app.state.pg_pool)
    document_store.close(mongo_client)


app = FastAPI(title="Product Management API - MongoDB + PostgreSQL", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(nosql_router, prefix=NOSQL_BASE, tags=["NoSQL"])
app.include_router(sql_router, prefix=SQL_BASE, tags=["SQL"])


@app.get("/")
async def root():
    return {
        "success": True,
        "message": "Product Management API",
        "endpoints": {
            "nosql": {
                "base": NOSQL_BASE,
                "methods": ["GET", "POST", "PUT", "DELETE"],
            },
            "sql": {
                "base": SQL_BASE,
                "methods": ["GET", "POST", "PUT", "DELETE"],
            },
        },
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
