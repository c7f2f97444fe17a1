"""
Order PDF renderer. One fixed A4 template: header, client block, order block,
bordered product table and a label/value footer for vehicle and team.
Output is deterministic for a given input (reportlab invariant mode).
"""
from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger
from reportlab.lib.colors import Color, black, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .errors import AssetUnavailable
from .models import CompanyIdentity, ExtractedOrder, OrderDocument

PAGE_WIDTH, PAGE_HEIGHT = A4
LEFT = 50
TOP = 820
BOTTOM_MARGIN = 40

REGULAR = "Helvetica"
BOLD = "Helvetica-Bold"
SHADE = Color(0.95, 0.95, 0.95)

TABLE_COLUMNS = (
    ("Descrição", 160),
    ("Código", 70),
    ("Qtd", 40),
    ("Unitário", 75),
    ("Desconto", 75),
    ("Total", 75),
)
ROW_HEIGHT = 17
FOOTER_ROW_HEIGHT = 22
FOOTER_LABEL_WIDTH = 120
FOOTER_VALUE_WIDTH = 375
LOGO_SIZE = 50

LogoSource = Union[bytes, str, Path]


def format_currency(value: Optional[float]) -> str:
    """R$ with two decimals and a decimal comma: 1234.5 -> 'R$ 1234,50'."""
    return "R$ " + f"{value or 0:.2f}".replace(".", ",")


def format_percent(value: Optional[float]) -> str:
    return f"{value or 0:.2f}".replace(".", ",") + "%"


def _safe(text: Any) -> str:
    # Standard Type 1 fonts only cover cp1252.
    return str(text or "").encode("cp1252", "replace").decode("cp1252")


def _fit(text: str, font: str, size: float, width: float) -> str:
    """Cut text so it fits inside width points."""
    text = _safe(text)
    while text and stringWidth(text, font, size) > width:
        text = text[:-1]
    return text


@dataclass
class _RenderContext:
    """Per-call drawing state: the canvas plus the vertical cursor."""
    canvas: canvas.Canvas
    y: float = TOP
    page: int = 1

    def ensure_space(self, height: float) -> bool:
        """Start a new page when height does not fit; returns True if it did."""
        if self.y - height >= BOTTOM_MARGIN:
            return False
        self.canvas.showPage()
        self.page += 1
        self.y = TOP
        return True

    def text(self, value: str, x: float, dy: float, font: str = REGULAR, size: float = 10) -> None:
        self.canvas.setFillColor(black)
        self.canvas.setFont(font, size)
        self.canvas.drawString(x, self.y - dy, _safe(value))

    def line(self, value: str, font: str = REGULAR, size: float = 10, advance: float = 17) -> None:
        self.ensure_space(advance)
        self.text(value, LEFT, 0, font, size)
        self.y -= advance

    def cell(self, x: float, width: float, height: float, value: str, font: str, fill: Color) -> None:
        c = self.canvas
        c.setStrokeColor(black)
        c.setLineWidth(1)
        c.setFillColor(fill)
        c.rect(x, self.y - height, width, height, stroke=1, fill=1)
        self.text(_fit(value, font, 10, width - 6), x + 2, height / 2 + 3.5, font)


def _load_logo(logo: LogoSource) -> ImageReader:
    try:
        data = logo if isinstance(logo, bytes) else Path(logo).read_bytes()
        reader = ImageReader(BytesIO(data))
        reader.getSize()
    except Exception as e:
        raise AssetUnavailable(f"Logo could not be loaded: {e}") from e
    return reader


def _draw_header(ctx: _RenderContext, company: CompanyIdentity, logo: Optional[ImageReader]) -> None:
    if logo is not None:
        ctx.canvas.drawImage(
            logo, LEFT + 20, ctx.y - LOGO_SIZE, width=LOGO_SIZE, height=LOGO_SIZE, mask="auto"
        )
    ctx.text(company.name, 150, 15, BOLD, 12)
    ctx.text(company.address, 150, 30)
    ctx.text(company.contact, 150, 43)
    ctx.y -= 80


def _draw_client(ctx: _RenderContext, doc: OrderDocument) -> None:
    client = doc.client
    ctx.line("Dados do Cliente", BOLD, 11, advance=22)
    ctx.line(f"Nome: {client.name}")
    optional = [
        ("Empresa", client.company),
        ("CPF/CNPJ", client.tax_id),
        ("Endereço", client.address),
        ("Telefone", client.phone),
        ("E-mail", client.email),
    ]
    for label, value in optional:
        if value:
            ctx.line(f"{label}: {value}")
    ctx.y -= 11


def _draw_order(ctx: _RenderContext, doc: OrderDocument) -> None:
    order = doc.order
    total = order.total_value or round(sum(i.line_total for i in doc.line_items), 2)
    ctx.line("Detalhes do Pedido", BOLD, 11, advance=22)
    ctx.line(f"Número do Pedido: {order.number}")
    ctx.line(f"Data do Pedido: {order.date}")
    ctx.line("Forma de Pagamento:")
    ctx.line(order.payment_method)
    ctx.line(f"Valor Total: {format_currency(total)}")
    ctx.y -= 11


def _draw_table_header(ctx: _RenderContext) -> None:
    x = LEFT
    for title, width in TABLE_COLUMNS:
        ctx.cell(x, width, ROW_HEIGHT, title, BOLD, SHADE)
        x += width
    ctx.y -= ROW_HEIGHT


def _draw_table(ctx: _RenderContext, doc: OrderDocument) -> None:
    ctx.ensure_space(ROW_HEIGHT * 2)
    _draw_table_header(ctx)
    for item in doc.line_items:
        if ctx.ensure_space(ROW_HEIGHT):
            _draw_table_header(ctx)
        row = (
            item.description,
            item.code,
            str(item.quantity or 0),
            format_currency(item.unit_price),
            format_percent(item.discount_percent),
            format_currency(item.line_total),
        )
        x = LEFT
        for value, (_, width) in zip(row, TABLE_COLUMNS):
            ctx.cell(x, width, ROW_HEIGHT, value, REGULAR, white)
            x += width
        ctx.y -= ROW_HEIGHT
    ctx.y -= 11


def _vehicle_summary(doc: OrderDocument) -> str:
    v = doc.vehicle
    summary = f"{v.make} {v.model}".strip()
    if v.color:
        summary += f" | Cor: {v.color}"
    if v.year:
        summary += f" | Ano: {v.year}"
    return summary


def _installers(doc: OrderDocument) -> str:
    names: list[str] = []
    for item in doc.line_items:
        if item.installer_name and item.installer_name not in names:
            names.append(item.installer_name)
    return ", ".join(names) or doc.team.installer_name


def _draw_footer(ctx: _RenderContext, doc: OrderDocument) -> None:
    rows = [
        ("Veículo do Cliente", _vehicle_summary(doc)),
        ("Placa", doc.vehicle.plate),
        ("Vendedor", doc.team.vendor_name or doc.order.vendor_name),
        ("Instalador", _installers(doc)),
    ]
    if doc.notes:
        rows.append(("Observações", doc.notes))
    for label, value in rows:
        ctx.ensure_space(FOOTER_ROW_HEIGHT)
        ctx.cell(LEFT, FOOTER_LABEL_WIDTH, FOOTER_ROW_HEIGHT, label, BOLD, SHADE)
        ctx.cell(LEFT + FOOTER_LABEL_WIDTH, FOOTER_VALUE_WIDTH, FOOTER_ROW_HEIGHT, value, REGULAR, white)
        ctx.y -= FOOTER_ROW_HEIGHT


def _as_document(order: Union[OrderDocument, ExtractedOrder, dict, None]) -> OrderDocument:
    if isinstance(order, OrderDocument):
        return order
    if isinstance(order, ExtractedOrder):
        return OrderDocument.from_extracted(order)
    return OrderDocument.model_validate(order or {})


def render_order(
    order: Union[OrderDocument, ExtractedOrder, dict, None],
    *,
    company: Optional[CompanyIdentity] = None,
    logo: Optional[LogoSource] = None,
) -> bytes:
    """
    Render an order as PDF bytes. No field is required; empty values leave empty slots.
    A logo that cannot be loaded is skipped with a warning.
    """
    doc = _as_document(order)
    company = company or CompanyIdentity()

    logo_image = None
    if logo is not None:
        try:
            logo_image = _load_logo(logo)
        except AssetUnavailable as e:
            logger.warning(f"Rendering without logo: {e}")

    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4, invariant=1)
    c.setTitle(_safe(f"Pedido {doc.order.number}".strip()))
    c.setAuthor(_safe(company.name))

    ctx = _RenderContext(canvas=c)
    _draw_header(ctx, company, logo_image)
    _draw_client(ctx, doc)
    _draw_order(ctx, doc)
    _draw_table(ctx, doc)
    _draw_footer(ctx, doc)
    c.save()

    logger.debug(f"Rendered order {doc.order.number or '(no number)'}: {ctx.page} page(s), {len(doc.line_items)} item(s)")
    return buf.getvalue()
