"""
Input validation utilities for the grocery marketplace.

Provides reusable validators for coordinates and row identifiers.
"""
from fastapi import HTTPException, Path, Query

MAX_ID_LENGTH = 64


def validate_coordinates(lat: float, lng: float) -> tuple[float, float]:
    """
    Validate a latitude/longitude pair.

    Raises:
        HTTPException(400) if either value is out of range
    """
    if lat is None or lng is None:
        raise HTTPException(status_code=400, detail="Both latitude and longitude are required")
    if not -90.0 <= lat <= 90.0:
        raise HTTPException(status_code=400, detail=f"Invalid latitude: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise HTTPException(status_code=400, detail=f"Invalid longitude: {lng}")
    return lat, lng


def validate_identifier(value: str, name: str = "id") -> str:
    """Validate an opaque row identifier (non-empty, bounded, no whitespace)."""
    if not value or not value.strip():
        raise HTTPException(status_code=400, detail=f"{name} is required")
    if len(value) > MAX_ID_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {name}: expected at most {MAX_ID_LENGTH} characters, got {len(value)}",
        )
    if any(ch.isspace() for ch in value):
        raise HTTPException(status_code=400, detail=f"Invalid {name}: must not contain whitespace")
    return value


def validated_order_id(order_id: str = Path(..., description="Order identifier")) -> str:
    """FastAPI dependency for validating order path parameters."""
    return validate_identifier(order_id, "order_id")


def validated_product_id(product_id: str = Path(..., description="Catalog product identifier")) -> str:
    """FastAPI dependency for validating product path parameters."""
    return validate_identifier(product_id, "product_id")


def validated_location_query(
    lat: float = Query(..., description="Latitude"),
    lng: float = Query(..., description="Longitude"),
) -> tuple[float, float]:
    """FastAPI dependency for validating lat/lng query parameters."""
    return validate_coordinates(lat, lng)
