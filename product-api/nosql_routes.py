"""
Routes NoSQL (MongoDB / pymongo) - CRUD sur les produits.

PUT remplace les quatre champs métier (les validateurs du schéma sont
rejoués, les champs optionnels omis reprennent leur valeur par défaut).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pymongo.errors import PyMongoError

from document_store import MongoProductStore
from dependencies import get_nosql_store
from errors import backend_error, malformed_id, not_found, respond, validation_error
from models import (
    DocumentValidationError,
    InvalidFilterError,
    MalformedIdError,
    ProductPayload,
    parse_in_stock_filter,
    parse_object_id,
    validate_product_document,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _object_id(product_id: str):
    try:
        return parse_object_id(product_id)
    except MalformedIdError:
        raise malformed_id()


def _document_fields(payload: ProductPayload) -> dict:
    try:
        return validate_product_document(payload)
    except DocumentValidationError as e:
        raise validation_error(e.messages)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductPayload,
    store: MongoProductStore = Depends(get_nosql_store),
):
    fields = _document_fields(payload)
    try:
        product = store.create(fields)
    except PyMongoError as e:
        logger.error(f"[NOSQL CREATE ERROR] {e}")
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
    store: MongoProductStore = Depends(get_nosql_store),
):
    """Liste filtrable par category (égalité) et inStock, plus récents d'abord"""
    try:
        in_stock_filter = parse_in_stock_filter(in_stock)
    except InvalidFilterError as e:
        raise validation_error([str(e)])

    query = {}
    if category:
        query["category"] = category
    if in_stock_filter is not None:
        query["inStock"] = in_stock_filter

    try:
        products = store.list(query)
    except PyMongoError as e:
        logger.error(f"[NOSQL LIST ERROR] {e}")
        raise backend_error("Error retrieving products", e)

    return respond(status.HTTP_200_OK, count=len(products), data=products)


@router.get("/{product_id}")
def get_product(
    product_id: str,
    store: MongoProductStore = Depends(get_nosql_store),
):
    oid = _object_id(product_id)
    try:
        product = store.get(oid)
    except PyMongoError as e:
        logger.error(f"[NOSQL GET ERROR] {e}")
        raise backend_error("Error retrieving product", e)

    if product is None:
        raise not_found()
    return respond(status.HTTP_200_OK, data=product)


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductPayload,
    store: MongoProductStore = Depends(get_nosql_store),
):
    oid = _object_id(product_id)
    fields = _document_fields(payload)
    try:
        product = store.replace(oid, fields)
    except PyMongoError as e:
        logger.error(f"[NOSQL UPDATE ERROR] {e}")
        raise backend_error("Error updating product", e)

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
    store: MongoProductStore = Depends(get_nosql_store),
):
    oid = _object_id(product_id)
    try:
        product = store.delete(oid)
    except PyMongoError as e:
        logger.error(f"[NOSQL DELETE ERROR] {e}")
        raise backend_error("Error deleting product", e)

    if product is None:
        raise not_found()
    return respond(
        status.HTTP_200_OK,
        message="Product deleted successfully",
        data=product,
    )
