"""
Coercion helpers for API payloads.

The server stores DECIMAL columns that MySQL drivers hand back as strings,
older rows use the Indonesian field names of the first schema, and product
images may be a bare base64 blob, a data-URI, an absolute URL or a relative
upload path. Everything that reads API responses goes through here so
callers only ever see one shape.
"""
import math
import re
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Sequence
from urllib.parse import urljoin

from kasir.models import DEFAULT_PAYMENT_METHOD, PAYMENT_METHODS

PLACEHOLDER_IMAGE = "/placeholder.svg"
MIN_IMAGE_LENGTH = 20
LOW_STOCK_THRESHOLD = 10

_PAYMENT_ALIASES = {m.lower(): m for m in PAYMENT_METHODS}
_PAYMENT_ALIASES["tunai"] = "Cash"

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
_CURRENCY_RE = re.compile(r"^(rp\.?|idr)\s*", re.IGNORECASE)


def canonical_payment_method(value: Any) -> Optional[str]:
    """Case-insensitive lookup; None when the value is not a known method."""
    if not isinstance(value, str):
        return None
    return _PAYMENT_ALIASES.get(value.strip().lower())


def normalize_payment_method(value: Any, default: str = DEFAULT_PAYMENT_METHOD) -> str:
    return canonical_payment_method(value) or default


def _parse_numeric_string(raw: str) -> float:
    stripped = _CURRENCY_RE.sub("", raw.strip())
    # "Rp 15.000" is rupiah formatting: dots group thousands
    rupiah = stripped != raw.strip()
    s = stripped.replace(" ", "")
    if "," in s and "." in s:
        # whichever separator comes last is the decimal one
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        head, _, tail = s.rpartition(",")
        if s.count(",") == 1 and 0 < len(tail) <= 2:
            s = head + "." + tail
        else:
            s = s.replace(",", "")
    elif s.count(".") > 1 or (rupiah and "." in s):
        s = s.replace(".", "")
    return float(s)


def to_number(value: Any, default: float = 0.0) -> float:
    """
    Coerce ``value`` to a finite float.

    Accepts ints, floats, and strings such as ``"50000.00"``, ``"50.000,50"``,
    ``"1,234.5"`` or ``"Rp 15.000"``. Without a currency prefix a single dot
    is read as the decimal separator, which is how the database serializes
    DECIMAL values.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = _parse_numeric_string(value)
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def to_int(value: Any, default: int = 0) -> int:
    return int(to_number(value, float(default)))


def display_total(tx: Mapping[str, Any]) -> float:
    """Stored total when usable, otherwise quantity x unit price."""
    stored = to_number(_first(tx, ("total",)))
    if stored > 0:
        return stored
    quantity = to_number(_first(tx, ("quantity", "qty")))
    price = to_number(_first(tx, ("unit_price", "price", "harga")))
    return quantity * price


def normalize_image_url(value: Any, base_url: Optional[str] = None) -> str:
    if not isinstance(value, str):
        return PLACEHOLDER_IMAGE
    trimmed = value.strip()
    if trimmed.startswith("/uploads/"):
        return urljoin(base_url.rstrip("/") + "/", trimmed.lstrip("/")) if base_url else trimmed
    if len(trimmed) < MIN_IMAGE_LENGTH:
        return PLACEHOLDER_IMAGE
    if trimmed.startswith("data:image"):
        return trimmed
    if trimmed.startswith(("http://", "https://")):
        return trimmed
    # only the head is sampled; long blobs may carry line breaks further on
    if _BASE64_RE.match(trimmed[:100]):
        return "data:image/jpeg;base64," + re.sub(r"\s", "", trimmed)
    return PLACEHOLDER_IMAGE


def _first(raw: Mapping[str, Any], keys: Sequence[str], default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _to_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def normalize_product(raw: Mapping[str, Any], base_url: Optional[str] = None) -> Dict[str, Any]:
    selling = to_number(_first(raw, ("selling_price", "harga_jual", "harga", "price")))
    purchase = to_number(_first(raw, ("purchase_price", "harga_beli")))
    pid = str(_first(raw, ("id",), ""))
    return {
        "id": pid,
        "code": _first(raw, ("code", "kode_produk")) or (f"PRD-{pid[:4]}" if pid else ""),
        "name": str(_first(raw, ("name", "nama", "nama_produk"), "")),
        "image": normalize_image_url(_first(raw, ("image", "gambar")), base_url),
        "stock": to_int(_first(raw, ("stock", "stok", "jumlah_stok"))),
        "purchase_price": purchase,
        "selling_price": selling,
        "profit": round(selling - purchase, 2),
        "created_at": _to_datetime(raw.get("created_at")),
        "updated_at": _to_datetime(raw.get("updated_at")),
    }


def normalize_transaction(raw: Mapping[str, Any], index: int = 0) -> Dict[str, Any]:
    return {
        "id": str(_first(raw, ("id",), "")),
        "no": to_int(raw.get("no")) or index + 1,
        "timestamp": _to_datetime(_first(raw, ("timestamp", "tanggal", "created_at"))),
        "product_name": str(_first(raw, ("product_name", "nama_produk"), "")),
        "product_id": _first(raw, ("product_id",)),
        "quantity": to_int(_first(raw, ("quantity", "qty"))),
        "unit_price": to_number(_first(raw, ("unit_price", "harga", "price"))),
        "total": display_total(raw),
        "payment_method": normalize_payment_method(_first(raw, ("payment_method", "metode_pembayaran"))),
    }


def normalize_expense(raw: Mapping[str, Any]) -> Dict[str, Any]:
    category = str(_first(raw, ("category", "kategori"), ""))
    return {
        "id": str(_first(raw, ("id",), "")),
        "category": category,
        "description": _first(raw, ("description", "keterangan")) or category,
        "date": _to_datetime(_first(raw, ("date", "tanggal"))),
        "cost": to_number(_first(raw, ("cost", "biaya"))),
        "notes": _first(raw, ("notes", "catatan")) or "",
    }
