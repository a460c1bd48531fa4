# models.py
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Dict, Any, Optional, List, Tuple, Union
from config import LIMIT_MIN, LIMIT_MAX

UNKNOWN_PRODUCT = "Unknown product"

LimitMap = Dict[str, int]

@dataclass(frozen=True)
class VariantMerchandise:
    id: str
    title: str = ""

@dataclass(frozen=True)
class OtherMerchandise:
    title: str = ""

Merchandise = Union[VariantMerchandise, OtherMerchandise]

@dataclass(frozen=True)
class CartLine:
    merchandise: Merchandise
    quantity: int

@dataclass(frozen=True)
class ValidationError:
    message: str
    target: str = "cart"

    def to_dict(self) -> Dict[str, Any]:
        return {"localizedMessage": self.message, "target": self.target}

@dataclass
class ConfigurationRecord:
    namespace: str
    key: str
    value: Optional[str] = None

def definition_shape(namespace: str, key: str) -> Dict[str, Any]:
    return {
        "access": {"admin": "MERCHANT_READ_WRITE"},
        "key": key,
        "name": "Validation Configuration",
        "namespace": namespace,
        "ownerType": "VALIDATION",
        "type": "json",
    }

def coerce_limit(value: Any) -> Optional[int]:
    """Return `value` as a non-negative int limit, or None when it isn't one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and value >= 0:
            return int(value)
        return None
    if isinstance(value, str) and value.strip().isdecimal():
        try:
            return int(value.strip())
        except ValueError:
            # too many digits to convert
            return None
    return None

# ----- host input -----
def merchandise_from_input(raw: Any) -> Merchandise:
    if not isinstance(raw, dict):
        return OtherMerchandise()
    product = raw.get("product")
    title = product.get("title") if isinstance(product, dict) else None
    if not isinstance(title, str):
        title = ""
    if isinstance(raw.get("id"), str) and raw["id"]:
        return VariantMerchandise(id=raw["id"], title=title)
    return OtherMerchandise(title=title)

def cart_from_input(raw: Any) -> List[CartLine]:
    """Parse `cart.lines`, dropping lines that carry no usable quantity."""
    lines = raw.get("lines") if isinstance(raw, dict) else None
    out = []
    for line in lines if isinstance(lines, list) else []:
        if not isinstance(line, dict):
            continue
        qty = line.get("quantity")
        if isinstance(qty, bool) or not isinstance(qty, int):
            continue
        out.append(CartLine(merchandise=merchandise_from_input(line.get("merchandise")), quantity=qty))
    return out

# ----- settings screen -----
def merge_settings(products: List[Dict[str, Any]], limit_map: LimitMap) -> LimitMap:
    """Working limits for the catalog shown on the settings screen.

    Variants with a persisted limit (zero included) keep it; the rest are left
    out so that no limit is invented for them.
    """
    settings: LimitMap = {}
    for product in products:
        for variant in product.get("variants", []):
            vid = variant.get("id")
            if vid in limit_map:
                settings[vid] = limit_map[vid]
    return settings

def validate_edits(raw: Any) -> Tuple[LimitMap, List[str]]:
    if not isinstance(raw, dict):
        return {}, ["Settings must be an object of variant id to limit"]
    limits: LimitMap = {}
    errors: List[str] = []
    for vid, value in raw.items():
        if not isinstance(vid, str) or not vid:
            errors.append(f"Invalid variant id: {vid!r}")
            continue
        if value is None:
            # cleared field: variant is unlimited
            continue
        limit = coerce_limit(value)
        if limit is None or not (LIMIT_MIN <= limit <= LIMIT_MAX):
            errors.append(f"Limit for {vid} must be a whole number between {LIMIT_MIN} and {LIMIT_MAX}")
            continue
        limits[vid] = limit
    return limits, errors
