"""
HTTP client for the kasir-pos API.

Wraps every endpoint, keeps the bearer token issued by login/register and
hands back normalized records (see ``kasir.normalize``), so callers never
deal with string-typed numbers or legacy field names.
"""
import logging
import time
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from kasir.normalize import normalize_expense, normalize_product, normalize_transaction

logger = logging.getLogger("kasir.client")

# give the server a moment to make the write visible before reading it back
REFETCH_DELAY = 0.5


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class PosClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 15.0,
        refetch_delay: float = REFETCH_DELAY,
    ):
        self.http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.base_url = str(self.http.base_url).rstrip("/")
        self.token = token
        self.refetch_delay = refetch_delay

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "PosClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = self.http.request(method, path, headers=headers, **kwargs)
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.status_code >= 400 or not body.get("success", False):
            message = body.get("error") or body.get("message") or resp.reason_phrase
            logger.debug("%s %s failed: %s %s", method, path, resp.status_code, message)
            raise ApiError(resp.status_code, message)
        return body.get("data")

    # auth

    def _auth(self, action: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", "/auth/", params={"action": action}, json=payload)

    def register(self, email: str, password: str, full_name: str) -> Dict[str, Any]:
        data = self._auth("register", {"email": email, "password": password, "full_name": full_name})
        self.token = data["token"]
        return data

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._auth("login", {"email": email, "password": password})
        self.token = data["token"]
        return data

    def logout(self) -> None:
        try:
            self._auth("logout")
        finally:
            self.token = None

    def verify(self) -> Dict[str, Any]:
        return self._auth("verify")

    # products

    def products(self) -> List[Dict[str, Any]]:
        return [normalize_product(p, self.base_url) for p in self._request("GET", "/products/") or []]

    def product(self, product_id: str) -> Dict[str, Any]:
        return normalize_product(self._request("GET", "/products/", params={"id": product_id}), self.base_url)

    def create_product(self, **fields) -> Dict[str, Any]:
        return normalize_product(self._request("POST", "/products/", json=fields), self.base_url)

    def update_product(self, product_id: str, **fields) -> Dict[str, Any]:
        data = self._request("PUT", "/products/", json={"id": product_id, **fields})
        return normalize_product(data, self.base_url)

    def delete_product(self, product_id: str) -> None:
        self._request("DELETE", "/products/", json={"id": product_id})

    # transactions

    def transactions(self) -> List[Dict[str, Any]]:
        rows = self._request("GET", "/transactions/") or []
        return [normalize_transaction(t, i) for i, t in enumerate(rows)]

    def create_transaction(self, **fields) -> Dict[str, Any]:
        return normalize_transaction(self._request("POST", "/transactions/", json=fields))

    def update_transaction(self, transaction_id: str, **fields) -> Dict[str, Any]:
        return normalize_transaction(self._request("PUT", "/transactions/", json={"id": transaction_id, **fields}))

    def delete_transaction(self, transaction_id: str) -> None:
        self._request("DELETE", "/transactions/", json={"id": transaction_id})

    # expenses

    def expenses(self) -> List[Dict[str, Any]]:
        return [normalize_expense(e) for e in self._request("GET", "/expenses/") or []]

    def create_expense(self, **fields) -> Dict[str, Any]:
        if isinstance(fields.get("date"), date):
            fields["date"] = fields["date"].isoformat()
        return normalize_expense(self._request("POST", "/expenses/", json=fields))

    def update_expense(self, expense_id: str, **fields) -> Dict[str, Any]:
        if isinstance(fields.get("date"), date):
            fields["date"] = fields["date"].isoformat()
        return normalize_expense(self._request("PUT", "/expenses/", json={"id": expense_id, **fields}))

    def delete_expense(self, expense_id: str) -> None:
        self._request("DELETE", "/expenses/", json={"id": expense_id})

    # settings, uploads, reports

    def settings(self) -> Dict[str, Any]:
        return self._request("GET", "/settings/")

    def update_settings(self, **fields) -> Dict[str, Any]:
        return self._request("PUT", "/settings/", json=fields)

    def upload_image(self, filename: str, content: bytes, content_type: str = "application/octet-stream") -> Dict[str, Any]:
        return self._request("POST", "/upload/", files={"image": (filename, content, content_type)})

    def delete_image(self, filename: str) -> None:
        self._request("DELETE", "/upload/", json={"filename": filename})

    def dashboard(self, start: Optional[date] = None, end: Optional[date] = None) -> Dict[str, Any]:
        params = {}
        if start:
            params["start"] = start.isoformat()
        if end:
            params["end"] = end.isoformat()
        return self._request("GET", "/dashboard/", params=params)

    def roas(self, selling_price: float, cogs: float, admin_fee_pct: float = 0.0, target_profit_pct: float = 0.0) -> Dict[str, Any]:
        payload = {
            "selling_price": selling_price,
            "cogs": cogs,
            "admin_fee_pct": admin_fee_pct,
            "target_profit_pct": target_profit_pct,
        }
        return self._request("POST", "/roas/", json=payload)

    def refresh(self) -> Dict[str, List[Dict[str, Any]]]:
        """Re-read everything after a write, once the refetch delay has passed."""
        if self.refetch_delay > 0:
            time.sleep(self.refetch_delay)
        return {
            "products": self.products(),
            "transactions": self.transactions(),
            "expenses": self.expenses(),
        }
