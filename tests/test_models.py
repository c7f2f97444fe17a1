"""
Tests for the order models: aliases, lenient renderer input and merging reviewed data.
"""

import pytest
from pydantic import ValidationError

from order_pipeline.models import DocumentLineItem, ExtractedOrder, LineItem, OrderDocument


def test_json_uses_camel_case():
    order = ExtractedOrder.model_validate(
        {"order": {"number": "1", "totalValue": 10}, "lineItems": [{"description": "Som", "unitPrice": 10}]}
    )
    data = order.model_dump(by_alias=True)
    assert data["order"]["totalValue"] == 10.0
    assert data["lineItems"][0]["unitPrice"] == 10.0
    assert "rawMetadata" in data


def test_line_item_constraints():
    with pytest.raises(ValidationError):
        LineItem(description="Som", quantity=0)
    with pytest.raises(ValidationError):
        LineItem(description="Som", unit_price=-1)


def test_vendor_name_is_mirrored():
    order = ExtractedOrder.model_validate({"team": {"vendorName": "Carlos"}})
    assert order.order.vendor_name == "Carlos"


def test_document_line_item_is_lenient():
    item = DocumentLineItem.model_validate(
        {"description": None, "quantity": "2", "unitPrice": "R$ 1.234,56", "discountPercent": "", "lineTotal": None}
    )
    assert item.description == ""
    assert item.quantity == 2
    assert item.unit_price == 1234.56
    assert item.discount_percent == 0.0
    assert item.line_total == 0.0


def test_document_defaults_for_missing_blocks():
    doc = OrderDocument.model_validate({"client": None, "lineItems": None, "notes": None})
    assert doc.client.name == ""
    assert doc.line_items == []
    assert doc.notes == ""


def test_from_extracted_merges_review_data():
    extracted = ExtractedOrder.model_validate(
        {
            "vehicle": {"make": "Fiat", "plate": "ABC1D23"},
            "lineItems": [{"description": "Alarme"}, {"description": "Trava"}],
            "warnings": ["Client name not found"],
            "rawMetadata": {"strategy": "regex"},
        }
    )
    doc = OrderDocument.from_extracted(
        extracted,
        vehicle={"model": "Uno", "plate": ""},
        vendor_name="Carlos",
        installer_names=["Pedro"],
    )
    assert doc.vehicle.make == "Fiat"
    assert doc.vehicle.model == "Uno"
    assert doc.vehicle.plate == "ABC1D23"
    assert doc.order.vendor_name == "Carlos"
    assert doc.team.vendor_name == "Carlos"
    assert [i.installer_name for i in doc.line_items] == ["Pedro", ""]
