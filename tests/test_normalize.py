from datetime import datetime

import pytest

from kasir.normalize import (
    PLACEHOLDER_IMAGE,
    display_total,
    normalize_expense,
    normalize_image_url,
    normalize_payment_method,
    normalize_product,
    normalize_transaction,
    to_int,
    to_number,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        (50000, 50000.0),
        ("50000.00", 50000.0),
        ("50.000,50", 50000.5),
        ("1,234.5", 1234.5),
        ("1.234.567", 1234567.0),
        ("Rp 15.000", 15000.0),
        ("12,5", 12.5),
    ],
)
def test_to_number(raw, expected):
    assert to_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "abc", True, float("nan"), float("inf"), [1]])
def test_to_number_falls_back_to_default(raw):
    assert to_number(raw) == 0.0
    assert to_number(raw, default=7.0) == 7.0


def test_to_int():
    assert to_int("7") == 7
    assert to_int("7.9") == 7
    assert to_int(None) == 0


def test_payment_method():
    assert normalize_payment_method("tokopedia") == "Tokopedia"
    assert normalize_payment_method("Tunai") == "Cash"
    assert normalize_payment_method("Bitcoin") == "Cash"
    assert normalize_payment_method(None) == "Cash"


def test_image_url():
    assert normalize_image_url(None) == PLACEHOLDER_IMAGE
    assert normalize_image_url("abc") == PLACEHOLDER_IMAGE
    assert normalize_image_url("/uploads/products/a.png", "http://pos.local/") == "http://pos.local/uploads/products/a.png"
    assert normalize_image_url("/uploads/products/a.png") == "/uploads/products/a.png"
    assert normalize_image_url("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"
    data_uri = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUg"
    assert normalize_image_url(data_uri) == data_uri
    blob = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAAB"
    assert normalize_image_url(blob) == "data:image/jpeg;base64," + blob
    assert normalize_image_url("not an image, just some text") == PLACEHOLDER_IMAGE


def test_display_total_falls_back_to_quantity_times_price():
    assert display_total({"quantity": 3, "unit_price": 0.125}) == 0.375
    assert display_total({"total": "150000.00"}) == 150000.0
    assert display_total({"total": "0", "quantity": "3", "unit_price": "2500"}) == 7500.0
    assert display_total({"qty": 2, "harga": "1.500,00"}) == 3000.0


def test_normalize_product_legacy_fields():
    product = normalize_product(
        {
            "id": "abcd1234",
            "nama_produk": "Kertas HVS",
            "harga_jual": "50000.00",
            "harga_beli": "42000",
            "stok": "7",
            "gambar": None,
        }
    )
    assert product["name"] == "Kertas HVS"
    assert product["code"] == "PRD-abcd"
    assert product["selling_price"] == 50000.0
    assert product["profit"] == 8000.0
    assert product["stock"] == 7
    assert product["image"] == PLACEHOLDER_IMAGE


def test_normalize_transaction():
    tx = normalize_transaction(
        {
            "id": 5,
            "tanggal": "2024-05-01T10:00:00",
            "nama_produk": "Kertas",
            "qty": "2",
            "harga": "25000",
            "total": None,
            "metode_pembayaran": "shopee",
        },
        index=2,
    )
    assert tx["id"] == "5"
    assert tx["no"] == 3
    assert tx["timestamp"] == datetime(2024, 5, 1, 10)
    assert tx["quantity"] == 2
    assert tx["total"] == 50000.0
    assert tx["payment_method"] == "Shopee"


def test_normalize_expense_description_defaults_to_category():
    expense = normalize_expense({"id": "e1", "kategori": "Listrik", "biaya": "125000", "tanggal": "2024-05-01"})
    assert expense["description"] == "Listrik"
    assert expense["cost"] == 125000.0
    assert expense["date"] == datetime(2024, 5, 1)
    assert expense["notes"] == ""
