# admin_api.py
from __future__ import annotations
import requests
from typing import Dict, Any, Optional, List
from config import Settings

class AdminApiError(RuntimeError):
    pass

DEFINITION_QUERY = """
query GetMetafieldDefinition($namespace: String!, $key: String!) {
  metafieldDefinitions(first: 1, ownerType: VALIDATION, namespace: $namespace, key: $key) {
    nodes { id }
  }
}
"""

DEFINITION_CREATE = """
mutation CreateMetafieldDefinition($definition: MetafieldDefinitionInput!) {
  metafieldDefinitionCreate(definition: $definition) {
    createdDefinition { id }
    userErrors { field message code }
  }
}
"""

METAFIELD_QUERY = """
query GetValidationMetafield($id: ID!, $namespace: String!, $key: String!) {
  validation(id: $id) {
    metafield(namespace: $namespace, key: $key) { value }
  }
}
"""

METAFIELDS_SET = """
mutation SetValidationMetafield($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id }
    userErrors { field message code }
  }
}
"""

PRODUCTS_QUERY = """
query FetchProducts($first: Int!, $variantsFirst: Int!) {
  products(first: $first) {
    nodes {
      title
      variants(first: $variantsFirst) {
        nodes { id title image { url } }
      }
    }
  }
}
"""

def new_session() -> requests.Session:
    sess = requests.Session()
    if Settings.PROXY_URL:
        sess.proxies = {"http": Settings.PROXY_URL, "https": Settings.PROXY_URL}
    sess.headers.update({
        "Content-Type": "application/json",
        "X-Shopify-Access-Token": Settings.SHOPIFY_ADMIN_TOKEN,
    })
    return sess

class AdminClient:
    """Metafield backend for one validation object of one shop."""

    def __init__(self, shop: Optional[str] = None, validation_id: Optional[str] = None,
                 api_version: Optional[str] = None, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        self.shop = shop or Settings.SHOPIFY_SHOP
        self.validation_id = validation_id or Settings.VALIDATION_ID
        self.api_version = api_version or Settings.SHOPIFY_API_VERSION
        self.session = session or new_session()
        self.timeout = timeout if timeout is not None else Settings.HTTP_TIMEOUT
        if not self.shop:
            raise RuntimeError("Missing required env var: SHOPIFY_SHOP")

    @property
    def url(self) -> str:
        return f"https://{self.shop}/admin/api/{self.api_version}/graphql.json"

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            resp = self.session.post(self.url, json={"query": query, "variables": variables or {}},
                                     timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            raise AdminApiError(f"Admin API request failed: {e}") from e
        except ValueError as e:
            raise AdminApiError("Admin API returned a non-JSON response") from e
        if body.get("errors"):
            msgs = "; ".join(str(err.get("message", err)) if isinstance(err, dict) else str(err)
                             for err in body["errors"])
            raise AdminApiError(f"Admin API errors: {msgs}")
        return body.get("data") or {}

    # ----- backend interface used by store.ConfigurationStore -----
    def find_definition(self, namespace: str, key: str) -> Optional[str]:
        data = self.graphql(DEFINITION_QUERY, {"namespace": namespace, "key": key})
        nodes = ((data.get("metafieldDefinitions") or {}).get("nodes")) or []
        return nodes[0]["id"] if nodes else None

    def create_definition(self, namespace: str, key: str, shape: Dict[str, Any]) -> Optional[str]:
        data = self.graphql(DEFINITION_CREATE, {"definition": shape})
        result = data.get("metafieldDefinitionCreate") or {}
        created = result.get("createdDefinition")
        if created:
            return created.get("id")
        # someone else created it in the meantime
        if any(e.get("code") == "TAKEN" for e in result.get("userErrors") or []):
            return self.find_definition(namespace, key)
        return None

    def get(self, namespace: str, key: str) -> Optional[str]:
        self._require_validation()
        data = self.graphql(METAFIELD_QUERY, {"id": self.validation_id, "namespace": namespace, "key": key})
        metafield = (data.get("validation") or {}).get("metafield")
        return metafield.get("value") if metafield else None

    def set(self, namespace: str, key: str, payload: str) -> Dict[str, Any]:
        self._require_validation()
        metafields = [{
            "ownerId": self.validation_id,
            "namespace": namespace,
            "key": key,
            "type": "json",
            "value": payload,
        }]
        data = self.graphql(METAFIELDS_SET, {"metafields": metafields})
        user_errors = (data.get("metafieldsSet") or {}).get("userErrors") or []
        if user_errors:
            return {"ok": False, "errors": [e.get("message", "Unknown error") for e in user_errors]}
        return {"ok": True}

    def _require_validation(self) -> None:
        if not self.validation_id:
            raise RuntimeError("Missing required env var: VALIDATION_ID")

    # ----- catalog for the settings screen -----
    def fetch_products(self, first: int = 5, variants_first: int = 5) -> List[Dict[str, Any]]:
        data = self.graphql(PRODUCTS_QUERY, {"first": first, "variantsFirst": variants_first})
        out = []
        for product in ((data.get("products") or {}).get("nodes")) or []:
            variants = []
            for v in ((product.get("variants") or {}).get("nodes")) or []:
                variants.append({
                    "id": v.get("id"),
                    "title": v.get("title"),
                    "imageUrl": (v.get("image") or {}).get("url"),
                })
            out.append({"title": product.get("title"), "variants": variants})
        return out
