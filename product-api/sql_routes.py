"""
Routes SQL (PostgreSQL / psycopg2) - CRUD sur la table products.

Contrairement au backend NoSQL: seule la présence de name/price est
vérifiée à la création (pas de contrôle de type ni de prix négatif) et
PUT est une mise à jour partielle des seuls champs fournis.
"""

import logging
from typing import Optional

import psycopg2
from fastapi import APIRouter, Depends, Query, status

from database import DatabaseConnectionError, SqlProductStore
from dependencies import get_sql_store
from errors import ApiError, backend_error, malformed_id, not_found, respond, validation_error
from models import (
    InvalidFilterError,
    MalformedIdError,
    ProductPayload,
    parse_in_stock_filter,
    parse_sql_id,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DB_ERRORS = (psycopg2.Error, DatabaseConnectionError)


def _sql_id(product_id: str) -> int:
    try:
        sql_id = parse_sql_id(product_id)
    except MalformedIdError:
        raise malformed_id()
    # Numérique mais hors des identifiants possibles: aucune ligne
    if sql_id is None:
        raise not_found()
    return sql_id


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductPayload,
    store: SqlProductStore = Depends(get_sql_store),
):
    if not payload.name or payload.price is None:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST, "Name and price are required fields"
        )

    in_stock = payload.in_stock if payload.in_stock is not None else True
    try:
        product = store.insert(
            payload.name,
            payload.price,
            payload.category or None,
            1 if in_stock else 0,
        )
    except DB_ERRORS as e:
        logger.error(f"[SQL CREATE ERROR] {e}")
        raise backend_error("Error creating product", e)

    return respond(
        status.HTTP_201_CREATED,
        message="Product created successfully",
        data=product,
    )


@router.get("")
def list_products(
    category: Optional[str] = None,
    in_stock: Optional[str] = Query(default=None, alias="inStock"),
    store: SqlProductStore = Depends(get_sql_store),
):
    try:
        in_stock_filter = parse_in_stock_filter(in_stock)
    except InvalidFilterError as e:
        raise validation_error([str(e)])

    try:
        products = store.list(category=category, in_stock=in_stock_filter)
    except DB_ERRORS as e:
        logger.error(f"[SQL LIST ERROR] {e}")
        raise backend_error("Error retrieving products", e)

    return respond(status.HTTP_200_OK, count=len(products), data=products)


@router.get("/{product_id}")
def get_product(
    product_id: str,
    store: SqlProductStore = Depends(get_sql_store),
):
    sql_id = _sql_id(product_id)
    try:
        product = store.get(sql_id)
    except DB_ERRORS as e:
        logger.error(f"[SQL GET ERROR] {e}")
        raise backend_error("Error retrieving product", e)

    if product is None:
        raise not_found()
    return respond(status.HTTP_200_OK, data=product)


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductPayload,
    store: SqlProductStore = Depends(get_sql_store),
):
    """
    Mise à jour partielle:
    1. Vérification de l'existence (404)
    2. SET construit uniquement avec les champs fournis (400 si aucun)
    3. Relecture de la ligne
    """
    sql_id = _sql_id(product_id)
    try:
        if store.get(sql_id) is None:
            raise not_found()

        changes = payload.supplied()
        if not changes:
            raise ApiError(status.HTTP_400_BAD_REQUEST, "No fields to update")
        if "inStock" in changes:
            changes["inStock"] = 1 if changes["inStock"] else 0

        product = store.update(sql_id, changes)
    except DB_ERRORS as e:
        logger.error(f"[SQL UPDATE ERROR] {e}")
        raise backend_error("Error updating product", e)

    # Supprimé entre la vérification et l'UPDATE
    if product is None:
        raise not_found()
    return respond(
        status.HTTP_200_OK,
        message="Product updated successfully",
        data=product,
    )


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    store: SqlProductStore = Depends(get_sql_store),
):
    sql_id = _sql_id(product_id)
    try:
        product = store.delete(sql_id)
    except DB_ERRORS as e:
        logger.error(f"[SQL DELETE ERROR] {e}")
        raise backend_error("Error deleting product", e)

    if product is None:
        raise not_found()
    return respond(
        status.HTTP_200_OK,
        message="Product deleted successfully",
        data=product,
    )
