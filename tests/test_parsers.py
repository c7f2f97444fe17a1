"""
Tests for the regex field cascade, line item strategies and amount parsing.
"""

import pytest

from order_pipeline.parsers import (
    build_line_item,
    extract_fields,
    extract_line_items,
    parse_decimal,
    parse_line_item,
    parse_order_text,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("R$ 1.234,56", 1234.56),
        ("350,00", 350.0),
        ("1.500", 1500.0),
        ("12.50", 12.5),
        ("1,234.56", 1234.56),
        (10, 10.0),
        ("abc", None),
        (None, None),
    ],
)
def test_parse_decimal(raw, expected):
    assert parse_decimal(raw) == expected


def test_client_name_on_its_own_line():
    fields = extract_fields("Pedido: 12345\nNome: Maria Souza\nTelefone: (11) 99999-9999\n")
    assert fields["client_name"] == "Maria Souza"
    assert fields["phone"] == "(11) 99999-9999"
    assert fields["order_number"] == "12345"


def test_missing_client_name_is_empty_not_an_error():
    order = parse_order_text("Pedido: 12345\nSensor de estacionamento 2 x 150,00\n")
    assert order.client.name == ""
    assert "Client name not found" in order.warnings


def test_consumidor_final():
    assert extract_fields("Cliente: Consumidor Final\n")["client_name"] == "Consumidor Final"


def test_payment_method_on_next_line():
    fields = extract_fields("Forma de Pagamento:\nCartão de crédito 3x\nValor Total: R$ 300,00\n")
    assert fields["payment_method"] == "Cartão de crédito 3x"
    assert fields["total_value"] == "300,00"


def test_empty_payment_method_does_not_capture_next_label():
    fields = extract_fields("Forma de Pagamento:\nValor Total: R$ 300,00\n")
    assert fields["payment_method"] == ""


def test_vehicle_fields_on_one_line():
    fields = extract_fields("Marca: Fiat  Modelo: Uno  Ano: 2015  Cor: Prata  Placa: ABC1D23\n")
    assert fields["vehicle_make"] == "Fiat"
    assert fields["vehicle_model"] == "Uno"
    assert fields["vehicle_year"] == "2015"
    assert fields["vehicle_color"] == "Prata"
    assert fields["vehicle_plate"] == "ABC1D23"


def test_labelled_row_without_description():
    items = extract_line_items("Quantidade: 2  Unitário: R$ 100,00 Total: R$ 200,00")
    assert len(items) == 1
    item = items[0]
    assert item.quantity == 2
    assert item.unit_price == 100.0
    assert item.line_total == 200.0
    assert item.description == "Item 1"


def test_full_row_with_code_and_discount():
    parsed = parse_line_item("Central multimidia MM-100 1 R$ 1500,00 0,00% R$ 1500,00", 1)
    assert parsed is not None
    name, item = parsed
    assert name == "full_row"
    assert item.description == "Central multimidia"
    assert item.code == "MM-100"
    assert item.line_total == 1500.0


def test_qty_separator_unit_derives_total():
    parsed = parse_line_item("Sensor de estacionamento 2 x 150,00", 1)
    assert parsed is not None
    name, item = parsed
    assert name == "qty_separator_unit"
    assert item.quantity == 2
    assert item.unit_price == 150.0
    assert item.line_total == 300.0
    assert item.code == "PROD-1"


def test_currency_prefixed_value_is_the_line_total():
    _, item = parse_line_item("Alarme automotivo 2 R$ 500,00", 1)
    assert item.line_total == 500.0
    assert item.unit_price == 250.0


def test_table_section_stops_at_subtotal():
    text = (
        "Descrição Qtd Unitário Total\n"
        "Sensor de estacionamento 2 x 150,00\n"
        "Subtotal: 300,00\n"
        "Garantia estendida do produto 990,00\n"
    )
    items = extract_line_items(text)
    assert [i.description for i in items] == ["Sensor de estacionamento"]


def test_field_lines_are_not_line_items():
    assert extract_line_items("Telefone: 11 99999 9999\nData do Pedido: 15/03/2024 1500,00\n") == []


def test_total_derived_from_unit_and_quantity():
    item = build_line_item("Camera de re", quantity=3, unit_price=33.33)
    assert item.line_total == round(33.33 * 3, 2)


def test_unit_derived_from_total_and_quantity():
    item = build_line_item("Camera de re", quantity=3, line_total=100.0)
    assert item.unit_price == round(100.0 / 3, 2)


def test_quantity_below_one_becomes_one():
    assert build_line_item("Camera de re", quantity=0, unit_price=10.0).quantity == 1


def test_order_total_falls_back_to_sum_of_items():
    order = parse_order_text("Nome: Maria Souza\nSensor de estacionamento 2 x 150,00\n")
    assert order.order.total_value == 300.0


def test_labelled_total_wins_over_item_sum():
    order = parse_order_text("Valor Total: R$ 280,00\nSensor de estacionamento 2 x 150,00\n")
    assert order.order.total_value == 280.0


def test_keyword_fallback_recovers_items():
    order = parse_order_text("Nome: Maria Souza\nCâmera de ré R$ 350,00 instalada\n")
    assert len(order.line_items) == 1
    assert order.line_items[0].line_total == 350.0
    assert order.line_items[0].quantity == 1
    assert any("product keywords" in w for w in order.warnings)


def test_keyword_fallback_can_be_disabled():
    order = parse_order_text("Nome: Maria Souza\nCâmera de ré R$ 350,00 instalada\n", keyword_fallback=False)
    assert order.line_items == []
    assert "No line items found" in order.warnings


def test_vendor_is_mirrored_into_team():
    order = parse_order_text("Vendedor: Carlos\n")
    assert order.order.vendor_name == "Carlos"
    assert order.team.vendor_name == "Carlos"


def test_plate_is_upper_cased():
    assert parse_order_text("Placa: abc1d23\n").vehicle.plate == "ABC1D23"


def test_payment_method_stops_at_next_label():
    fields = extract_fields("Forma de Pagamento: Pix  Vendedor: Carlos\n")
    assert fields["payment_method"] == "Pix"
    assert fields["vendor"] == "Carlos"


def test_payment_method_keeps_installment_amount():
    fields = extract_fields("Pagamento: 3x de R$ 100,00\n")
    assert fields["payment_method"] == "3x de R$ 100,00"


def test_trailing_year_is_not_a_price():
    assert extract_line_items("Instalacao de som no Golf 2015\n") == []
    order = parse_order_text("Instalacao de som no Golf 2015\n")
    assert order.line_items == []


def test_description_value_needs_cents_or_currency():
    _, item = parse_line_item("Garantia estendida do produto 990,00", 1)
    assert item.line_total == 990.0
    _, item = parse_line_item("Garantia estendida do produto R$ 990", 1)
    assert item.line_total == 990.0
