# limits.py — per-variant quantity caps enforced on the cart
from __future__ import annotations
import json
import sys
from typing import Dict, Any, List, Sequence, Mapping
from models import (
    CartLine, ValidationError, VariantMerchandise, UNKNOWN_PRODUCT,
    coerce_limit, cart_from_input,
)

def evaluate(cart: Sequence[CartLine], limit_map: Mapping[str, Any]) -> List[ValidationError]:
    """Check every cart line against its variant's limit.

    One error per offending line, in cart order. Variants missing from
    `limit_map`, or mapped to something that isn't a limit, are unbounded.
    Non-variant merchandise is never limited.
    """
    errors = []
    for line in cart:
        merch = line.merchandise
        if not isinstance(merch, VariantMerchandise):
            continue
        limit = coerce_limit(limit_map.get(merch.id))
        if limit is None:
            continue
        if line.quantity > limit:
            title = merch.title or UNKNOWN_PRODUCT
            errors.append(ValidationError(
                message=f"Orders are limited to a maximum of {line.quantity} of {title}",
            ))
    return errors

def _configuration(validation: Any) -> Dict[str, Any]:
    metafield = validation.get("metafield") if isinstance(validation, dict) else None
    value = metafield.get("value") if isinstance(metafield, dict) else None
    if not value:
        return {}
    try:
        data = json.loads(value)
    except (TypeError, ValueError):
        # a broken config must never block checkout
        return {}
    return data if isinstance(data, dict) else {}

def run(payload: Any) -> Dict[str, Any]:
    """Host entry point: `{cart, validation}` in, `{"errors": [...]}` out."""
    if not isinstance(payload, dict):
        payload = {}
    cart = cart_from_input(payload.get("cart"))
    configuration = _configuration(payload.get("validation"))
    return {"errors": [e.to_dict() for e in evaluate(cart, configuration)]}

if __name__ == "__main__":
    json.dump(run(json.load(sys.stdin)), sys.stdout)
    sys.stdout.write("\n")
