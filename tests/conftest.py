"""
Shared fixtures: small receipt PDFs built with reportlab, and an order ready for rendering.
"""

from io import BytesIO

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from order_pipeline.models import DocumentLineItem, OrderDocument


def _build_pdf(lines, encrypt=None):
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4, encrypt=encrypt)
    c.setFont("Helvetica", 11)
    y = 800
    for line in lines:
        c.drawString(50, y, line)
        y -= 16
    c.save()
    return buf.getvalue()


@pytest.fixture
def make_pdf():
    """Factory: list of text lines -> PDF bytes, one line per row."""
    return _build_pdf


@pytest.fixture
def receipt_lines():
    return [
        "Pedido: 12345",
        "Data: 15/03/2024",
        "Nome: Maria Souza",
        "CPF: 123.456.789-00",
        "Telefone: (11) 99999-9999",
        "Forma de Pagamento: Pix",
        "Descrição Qtd Unitário Total",
        "Sensor de estacionamento 2 x 150,00",
        "Subtotal: 300,00",
        "Vendedor: Carlos",
    ]


@pytest.fixture
def encrypted_pdf():
    return _build_pdf(["Nome: Maria Souza"], encrypt="secret")


@pytest.fixture
def sample_document():
    return OrderDocument.model_validate(
        {
            "client": {"name": "Maria Souza", "phone": "(11) 99999-9999"},
            "order": {"number": "12345", "date": "15/03/2024", "paymentMethod": "Pix", "totalValue": 1500.0},
            "lineItems": [
                DocumentLineItem(
                    description="Central multimidia",
                    code="MM-100",
                    quantity=1,
                    unit_price=1500.0,
                    line_total=1500.0,
                    installer_name="Pedro",
                )
            ],
            "vehicle": {"make": "Fiat", "model": "Uno", "year": "2015", "plate": "ABC1D23", "color": "Prata"},
            "team": {"vendorName": "Carlos"},
        }
    )
