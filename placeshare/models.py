from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, EmailStr, Field


class Coordinates(BaseModel):
    lat: float
    lng: float


class PlaceUpdate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=5)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class AuthResult(BaseModel):
    userId: str
    email: EmailStr
    token: str


def _stringify(val: Any) -> Any:
    """Convert MongoDB types to JSON-serializable types."""
    if isinstance(val, ObjectId):
        return str(val)
    elif isinstance(val, datetime):
        return val.isoformat()
    return val


def serialize_doc(doc: dict) -> dict:
    """Convert Mongo ObjectIds and other types to JSON-serializable formats."""
    if not isinstance(doc, dict):
        return doc

    result = {}
    for key, value in doc.items():
        if isinstance(value, dict):
            result[key] = serialize_doc(value)
        elif isinstance(value, list):
            result[key] = [serialize_doc(item) if isinstance(item, dict) else _stringify(item) for item in value]
        else:
            result[key] = _stringify(value)
    return result


def to_public(doc: dict, hidden: tuple = ("pending", "pending_since")) -> Dict[str, Any]:
    """
    Serialize a stored document for API responses.

    Adds an ``id`` alias for ``_id`` and drops bookkeeping fields.
    """
    result = {k: v for k, v in serialize_doc(doc).items() if k not in hidden}
    if "_id" in result:
        result["id"] = result["_id"]
    return result


def user_to_public(doc: dict) -> Dict[str, Any]:
    return to_public(doc, hidden=("password",))


def places_to_public(docs: List[dict]) -> List[Dict[str, Any]]:
    return [to_public(d) for d in docs]


def parse_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """Return the ObjectId for ``value`` or None if it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)
