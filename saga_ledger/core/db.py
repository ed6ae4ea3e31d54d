from typing import Dict, Iterable, Optional
from tortoise import Tortoise
from saga_ledger.core.config import (
    GENERATE_SCHEMAS,
    ORDERS_CONNECTION,
    ORDERS_DATABASE_URL,
    PAYMENTS_CONNECTION,
    PAYMENTS_DATABASE_URL,
)
import logging
from logging import INFO

log = logging.getLogger(__name__)

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)

# Models modules per service. The two services never share a database.
MODELS_MODULES = {
    ORDERS_CONNECTION: ["saga_ledger.models.order"],
    PAYMENTS_CONNECTION: ["saga_ledger.models.account"],
}

DB_URLS = {
    ORDERS_CONNECTION: ORDERS_DATABASE_URL,
    PAYMENTS_CONNECTION: PAYMENTS_DATABASE_URL,
}


def build_tortoise_config(services: Iterable[str], db_urls: Optional[Dict[str, str]] = None) -> dict:
    """
    Builds a Tortoise config with one connection and one app per service.

    A service process passes only its own name; tests pass both so the whole
    saga can run inside one event loop.
    """
    urls = {**DB_URLS, **(db_urls or {})}
    connections = {}
    apps = {}
    for service in services:
        if service not in MODELS_MODULES:
            raise ValueError(f"Unknown service: {service}")
        connections[service] = urls[service]
        apps[service] = {"models": MODELS_MODULES[service], "default_connection": service}
    return {"connections": connections, "apps": apps}


async def init_db(*services: str, db_urls: Optional[Dict[str, str]] = None, generate_schemas: bool = GENERATE_SCHEMAS):
    """Initializes the Tortoise ORM connections and generates schemas."""
    try:
        await Tortoise.init(config=build_tortoise_config(services, db_urls))
        if generate_schemas:
            # Generate the database schema (create tables)
            await Tortoise.generate_schemas()
        log.info(f"Database connection established for {', '.join(services)}.")
    except Exception as e:
        log.error(f"FATAL ERROR: Could not connect to database for {', '.join(services)}. Error: {e}")
        # Re-raise to prevent the application from starting without a database
        raise


async def close_db():
    """Closes all database connections."""
    await Tortoise.close_connections()
    log.info("Database connections closed.")
