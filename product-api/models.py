import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

# Borne max d'une colonne INTEGER / SERIAL PostgreSQL
MAX_SQL_ID = 2_147_483_647
NUMERIC_ID = re.compile(r"\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*", re.ASCII)


class MalformedIdError(ValueError):
    """Identifiant syntaxiquement invalide pour le backend"""


class DocumentValidationError(ValueError):
    """Un ou plusieurs champs du document sont invalides"""

    def __init__(self, messages: List[str]):
        super().__init__("; ".join(messages))
        self.messages = messages


class InvalidFilterError(ValueError):
    pass


class ProductPayload(BaseModel):
    """Corps de requête commun aux deux backends.

    Champs non typés: le backend document applique ses propres validateurs,
    le backend relationnel ne vérifie que la présence.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Any = None
    price: Any = None
    category: Any = None
    in_stock: Any = Field(default=None, alias="inStock")

    def supplied(self) -> Dict[str, Any]:
        """Champs présents dans le corps, indexés par leur nom JSON"""
        return {
            ("inStock" if field == "in_stock" else field): getattr(self, field)
            for field in self.model_fields_set
        }


class NoSqlProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    name: str
    price: float
    category: Optional[str] = None
    in_stock: bool = Field(default=True, alias="inStock")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @classmethod
    def from_document(cls, doc: dict) -> "NoSqlProduct":
        return cls(**{**doc, "_id": str(doc["_id"])})


class SqlProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    price: float
    category: Optional[str] = None
    in_stock: bool = Field(default=True, alias="inStock")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @classmethod
    def from_row(cls, row: dict) -> "SqlProduct":
        """Construit un produit depuis une ligne RealDictCursor (in_stock 0/1 -> bool)"""
        return cls(
            id=row["id"],
            name=row["name"],
            price=float(row["price"]),
            category=row.get("category"),
            in_stock=bool(row.get("in_stock")),
            created_at=row.get("created_at"),
        )


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_product_document(payload: ProductPayload) -> Dict[str, Any]:
    """
    Applique le schéma document:
    name chaîne non vide (trim), price nombre >= 0 obligatoire,
    category chaîne optionnelle (trim), inStock booléen (défaut true).

    Retourne les champs normalisés ou lève DocumentValidationError
    avec un message par champ invalide.
    """
    errors: List[str] = []
    fields: Dict[str, Any] = {}

    name = payload.name
    if _blank(name):
        errors.append("Product name is required")
    elif not isinstance(name, str):
        errors.append("Product name must be a string")
    else:
        fields["name"] = name.strip()

    price = payload.price
    if _blank(price):
        errors.append("Product price is required")
    else:
        # Stocké en double BSON: un int Python > 8 octets ne passerait pas l'encodage
        if isinstance(price, bool) or not isinstance(price, (str, int, float)):
            price = None
        else:
            try:
                price = float(price.strip() if isinstance(price, str) else price)
            except (ValueError, OverflowError):
                price = None
        if price is None or not math.isfinite(price):
            errors.append("Product price must be a number")
        elif price < 0:
            errors.append("Price cannot be negative")
        else:
            fields["price"] = price

    category = payload.category
    if category is None:
        fields["category"] = None
    elif not isinstance(category, str):
        errors.append("Product category must be a string")
    else:
        fields["category"] = category.strip()

    in_stock = payload.in_stock
    if in_stock is None:
        fields["inStock"] = True
    elif isinstance(in_stock, bool):
        fields["inStock"] = in_stock
    elif isinstance(in_stock, int) and in_stock in (0, 1):
        fields["inStock"] = bool(in_stock)
    elif in_stock in ("true", "false"):
        fields["inStock"] = in_stock == "true"
    else:
        errors.append("inStock must be a boolean")

    if errors:
        raise DocumentValidationError(errors)
    return fields


def parse_in_stock_filter(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    if value == "true":
        return True
    if value == "false":
        return False
    raise InvalidFilterError(
        f"Invalid inStock filter '{value}': expected 'true' or 'false'"
    )


def parse_object_id(value: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise MalformedIdError(value)
    return ObjectId(value)


def parse_sql_id(value: str) -> Optional[int]:
    """
    MalformedIdError si la valeur n'est pas numérique.
    None pour un nombre qui ne peut désigner aucune ligne
    (négatif, décimal, hors plage INTEGER): la recherche répond 404.
    """
    if not NUMERIC_ID.fullmatch(value):
        raise MalformedIdError(value)
    number = float(value)
    if not number.is_integer() or not 0 <= number <= MAX_SQL_ID:
        return None
    return int(number)
