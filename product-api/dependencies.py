"""
Injection des stores dans les handlers.

Le client MongoDB et le pool PostgreSQL sont créés au démarrage (lifespan)
et portés par app.state; les tests les remplacent via dependency_overrides.
"""

from fastapi import Request

from database import SqlProductStore
from document_store import MongoProductStore


def get_nosql_store(request: Request) -> MongoProductStore:
    return MongoProductStore(request.app.state.products_collection)


def get_sql_store(request: Request) -> SqlProductStore:
    return SqlProductStore(request.app.state.pg_pool)
