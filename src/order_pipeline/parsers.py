"""
Regex parsers for Brazilian receipt/order text.
Scalar fields use prioritized label-anchored patterns; line items use an ordered strategy list, first match wins.
Nothing here raises for missing data: fields default to "" and unmatched lines are skipped.
"""
from __future__ import annotations

import re
from typing import Callable, Optional

from loguru import logger

from .models import ClientInfo, ExtractedOrder, LineItem, OrderInfo, TeamInfo, VehicleInfo

# Horizontal whitespace: label patterns must never run onto the next line.
H = r"[^\S\n]"

_WORD = r"A-Za-zÀ-ÿ"
_PERSON = rf"([{_WORD}][{_WORD}.'\- ]*?)"
# Value ends at a separator, end of line, or the next "Label:" on the same line.
_STOP = rf"{H}*(?:\||,|;|\n|$)|{H}+[{_WORD}]+{H}*:"
# Same, but commas belong to free-form values such as "3x de R$ 100,00".
_VALUE_STOP = rf"{H}*(?:\||;|\n|$)|{H}+[{_WORD}]+{H}*:"


def parse_decimal(value: str | float | int | None) -> Optional[float]:
    """
    Parse an amount written the Brazilian way ("R$ 1.234,56", "350,00", "1.500").
    Currency symbols and thousands separators are dropped; when both separators
    appear the last one is the decimal separator. Returns None when there is no number.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = re.sub(r"[^\d.,]", "", str(value))
    if not re.search(r"\d", s):
        return None
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", "") if s.count(",") > 1 else s.replace(",", ".")
    elif s.count(".") > 1:
        s = s.replace(".", "")
    elif "." in s and len(s) - s.index(".") - 1 == 3:
        s = s.replace(".", "")
    try:
        return float(s)
    except ValueError:
        return None


def _compile(*patterns: str) -> list[re.Pattern]:
    return [re.compile(p, re.I) for p in patterns]


# Field name -> patterns in priority order. Group 1 is the value.
FIELD_PATTERNS: dict[str, list[re.Pattern]] = {
    "client_name": _compile(
        rf"\b(?:nome(?:{H}+do{H}+cliente)?|cliente|destinat[áa]rio|para){H}*:{H}*{_PERSON}"
        rf"(?={H}+(?:cpf|cnpj|rg|telefone|tel|fone)\b|{_STOP})",
        r"\b(consumidor\s+final)\b",
    ),
    "tax_id": _compile(
        rf"\b(?:cpf|cnpj)(?:{H}*/{H}*(?:cpf|cnpj))?{H}*:?{H}*(\d[\d./\-]{{10,17}})",
        r"\b(\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2})\b",
        r"\b(\d{3}\.\d{3}\.\d{3}-\d{2})\b",
    ),
    "address": _compile(
        rf"\bendere[çc]o{H}*:?{H}*(\S[^\n]*)",
        rf"\b((?:rua|avenida|av\.|alameda|travessa|rodovia){H}+[^\n]+)",
    ),
    "phone": _compile(
        rf"\b(?:telefone|celular|fone|tel)\b\.?{H}*:?{H}*(\+?[\d() \-]{{8,}}\d)",
    ),
    "email": _compile(
        rf"\be-?mail\b{H}*:?{H}*([\w.%+\-]+@[\w.\-]+\.[A-Za-z]{{2,}})",
    ),
    "order_number": _compile(
        rf"\bn[úu]mero{H}+do{H}+pedido{H}*:?{H}*#?{H}*(\d{{3,}})",
        rf"\bpedido\b{H}*(?:n[º°o]\.?)?{H}*[:#]?{H}*(\d{{3,}})",
        rf"(?:\bn[º°]|\bn[úu]mero\b|\bno\.|\border\b){H}*[:#]?{H}*(\d{{3,}})",
    ),
    "order_date": _compile(
        rf"\b(?:data(?:{H}+d[aeo]{H}+[{_WORD}]+)?|emiss[ãa]o|emitido(?:{H}+em)?){H}*:?{H}*"
        r"(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})",
        r"\b(\d{1,2}/\d{1,2}/\d{4})\b",
    ),
    "payment_method": _compile(
        rf"\b(?:forma{H}+de{H}+pagamento|condi[çc](?:[ãa]o|[õo]es){H}+de{H}+pagamento|pagamento){H}*:{H}*(\S[^\n]{{2,49}}?)(?={_VALUE_STOP})",
        rf"\bforma{H}+de{H}+pagamento{H}*:?{H}*\n{H}*(?![{_WORD} ]{{1,30}}:)(\S[^\n]{{2,49}}?)(?={_VALUE_STOP})",
        rf"\b(\d{{1,2}}{H}*x{H}*(?:de{H}+)?R\${H}*\d[\d.,]*)",
    ),
    "total_value": _compile(
        rf"\b(?:valor{H}+total|total{H}+geral|total{H}+do{H}+pedido|total{H}+a{H}+pagar){H}*:?{H}*"
        rf"(?:R\${H}*)?(\d[\d.,]*)",
    ),
    "vehicle_make": _compile(
        rf"\bmarca\b{H}*:?{H}*([{_WORD}\-]+)",
        rf"\bve[íi]culo(?:{H}+do{H}+cliente)?\b{H}*:?{H}*([{_WORD}\-]+)",
    ),
    "vehicle_model": _compile(
        rf"\bmodelo\b{H}*:?{H}*([{_WORD}0-9][{_WORD}0-9.\- ]*?)"
        rf"(?=\b(?:ano|cor|placa)\b|{_STOP})",
        rf"\bve[íi]culo(?:{H}+do{H}+cliente)?\b{H}*:?{H}*[{_WORD}\-]+{H}+"
        rf"([{_WORD}0-9][{_WORD}0-9.\- ]*?)(?={H}*(?:\||\n|$))",
    ),
    "vehicle_plate": _compile(
        rf"\bplaca\b{H}*:?{H}*([A-Z]{{3}}[\- ]?\d[A-Z0-9]\d{{2}})\b",
    ),
    "vehicle_year": _compile(
        rf"\bano\b(?:{H}+(?:modelo|fabrica[çc][ãa]o))?{H}*:?{H}*((?:19|20)\d{{2}})\b",
    ),
    "vehicle_color": _compile(
        rf"\bcor\b{H}*:?{H}*([{_WORD}][{_WORD} ]*?)(?=\b(?:ano|placa)\b|{_STOP})",
    ),
    "installer": _compile(
        rf"\b(?:instaladora?|instaladores|t[ée]cnico|respons[áa]vel)\b{H}*:?{H}*{_PERSON}"
        rf"(?={_STOP})",
    ),
    "vendor": _compile(
        rf"\b(?:vendedora?|atendente|consultora?)\b{H}*:?{H}*{_PERSON}(?={_STOP})",
    ),
    "notes": _compile(
        rf"\b(?:observa[çc][õo]es|observa[çc][ãa]o|obs)\b\.?{H}*:?{H}*([^\n]{{10,}})",
    ),
}


def extract_field(text: str, patterns: list[re.Pattern]) -> str:
    """First group of the first pattern that matches, stripped; "" when none match."""
    for pattern in patterns:
        m = pattern.search(text)
        if m and m.group(1).strip():
            return re.sub(r"\s+", " ", m.group(1)).strip(" |-")
    return ""


def extract_fields(text: str) -> dict[str, str]:
    """Run every field cascade independently over the full text."""
    fields = {name: extract_field(text, patterns) for name, patterns in FIELD_PATTERNS.items()}
    found = [k for k, v in fields.items() if v]
    logger.debug(f"Fields found: {found}")
    return fields


# --- line items ---

_CODE = r"(?-i:(?=[A-Z0-9\-]*[\d\-])[A-Z0-9][A-Z0-9\-]{2,})"
_RS = r"(?:R\$\s*)?"

LineItemBuilder = Callable[[re.Match, int], Optional[LineItem]]


def build_line_item(
    description: str,
    code: str = "",
    quantity: Optional[int | float] = None,
    unit_price: Optional[float] = None,
    discount_percent: Optional[float] = None,
    line_total: Optional[float] = None,
) -> LineItem:
    """Build a LineItem, deriving whichever of unit price / total is missing."""
    qty = int(quantity) if quantity and quantity >= 1 else 1
    unit = unit_price or 0.0
    total = line_total or 0.0
    if total == 0 and unit > 0:
        total = round(unit * qty, 2)
    elif unit == 0 and total > 0:
        unit = round(total / qty, 2)
    return LineItem(
        description=description,
        code=code,
        quantity=qty,
        unit_price=unit,
        discount_percent=discount_percent or 0.0,
        line_total=total,
    )


def clean_description(text: str) -> str:
    """Drop a leading item number and collapse whitespace."""
    text = re.sub(r"^\d+\s*-?\s*", "", text or "")
    return re.sub(r"\s+", " ", text).strip(" |-")


def _group(m: re.Match, name: str) -> Optional[str]:
    return m.groupdict().get(name)


def _build_priced(m: re.Match, index: int) -> Optional[LineItem]:
    qty = _group(m, "qty")
    return build_line_item(
        description=clean_description(_group(m, "desc") or ""),
        code=(_group(m, "code") or "").strip() or f"PROD-{index}",
        quantity=int(qty) if qty else 1,
        unit_price=parse_decimal(_group(m, "unit")),
        discount_percent=parse_decimal(_group(m, "discount")),
        line_total=parse_decimal(_group(m, "total")),
    )


def _build_labelled(m: re.Match, index: int) -> Optional[LineItem]:
    item = _build_priced(m, index)
    if item is not None and not item.description:
        item.description = f"Item {index}"
    return item


# (name, pattern, builder) in priority order.
LINE_ITEM_STRATEGIES: list[tuple[str, re.Pattern, LineItemBuilder]] = [
    (
        "full_row",
        re.compile(
            rf"^(?P<desc>.{{4,}}?)\s+(?P<code>{_CODE})\s+(?P<qty>\d+)\s+{_RS}(?P<unit>\d[\d.,]*)\s+"
            rf"{_RS}(?P<discount>\d[\d.,]*)\s*%?\s+{_RS}(?P<total>\d[\d.,]*)$",
            re.I,
        ),
        _build_priced,
    ),
    (
        "row_without_code",
        re.compile(
            rf"^(?P<desc>.{{4,}}?)\s+(?P<qty>\d+)\s+{_RS}(?P<unit>\d[\d.,]*)\s+"
            rf"(?P<discount>\d[\d.,]*)\s*%\s+{_RS}(?P<total>\d[\d.,]*)$",
            re.I,
        ),
        _build_priced,
    ),
    (
        "labelled_row",
        re.compile(
            rf"^(?P<desc>.*?)\s*\bquantidade\b\s*:?\s*(?P<qty>\d+)\s+(?:valor\s+)?unit[áa]rio\s*:?\s*"
            rf"{_RS}(?P<unit>\d[\d.,]*)"
            rf"(?:\s+desconto\s*:?\s*(?P<discount>\d[\d.,]*)\s*%?)?"
            rf"\s+(?:valor\s+)?total\s*:?\s*{_RS}(?P<total>\d[\d.,]*)\s*$",
            re.I,
        ),
        _build_labelled,
    ),
    (
        "qty_unit_total",
        re.compile(
            rf"^(?P<desc>.{{4,}}?)\s+(?P<qty>\d+)\s+{_RS}(?P<unit>\d[\d.,]{{2,}})\s+{_RS}(?P<total>\d[\d.,]{{2,}})$",
            re.I,
        ),
        _build_priced,
    ),
    (
        "qty_separator_unit",
        re.compile(
            rf"^(?P<desc>.{{4,}}?)\s+(?P<qty>\d+)\s*(?:x|un\.?|unid\.?|p[çc]s?\.?|-|\|)\s*"
            rf"{_RS}(?P<unit>\d[\d.,]{{2,}})$",
            re.I,
        ),
        _build_priced,
    ),
    (
        "qty_currency_total",
        re.compile(rf"^(?P<desc>.{{4,}}?)\s+(?P<qty>\d+)\s+R\$\s*(?P<total>\d[\d.,]{{2,}})$", re.I),
        _build_priced,
    ),
    (
        "code_prefixed",
        re.compile(rf"^(?P<code>\d+)\s*-\s*(?P<desc>.{{10,}}?)\s+{_RS}(?P<total>\d[\d.,]{{2,}})$", re.I),
        _build_priced,
    ),
    (
        "description_value",
        re.compile(
            rf"^(?P<desc>.{{15,}}?)\s+(?:R\$\s*|(?=\d[\d.,]*[.,]\d{{2}}$))(?P<total>\d[\d.,]{{2,}})$",
            re.I,
        ),
        _build_priced,
    ),
]

# Lines of the form "Label: value" for order/client/vehicle fields are never products.
_FIELD_LINE = re.compile(
    r"^\s*(?:nome|cliente|cpf|cnpj|endere[çc]o|telefone|tel|celular|fone|e-?mail|pedido|n[úu]mero|data|"
    r"emiss[ãa]o|forma|pagamento|condi[çc]|valor|placa|ano|cor|marca|modelo|ve[íi]culo|vendedora?|"
    r"instaladora?|observa|obs|cep)\b[^:\n]{0,30}:",
    re.I,
)
_TOTAL_LINE = re.compile(r"^total\s*:?\s*(?:R\$\s*)?[\d.,]+$", re.I)


def _is_table_header(line: str) -> bool:
    low = line.lower()
    if re.search(r"\d", line):
        return False
    return ("descri" in low or "produto" in low) and any(
        w in low for w in ("qtd", "qtde", "quant", "valor", "total", "unit")
    )


def _is_table_end(line: str) -> bool:
    low = line.lower()
    return "subtotal" in low or "total geral" in low or bool(_TOTAL_LINE.match(line))


def _is_valid(item: Optional[LineItem]) -> bool:
    return (
        item is not None
        and len(item.description) > 3
        and not item.description.endswith(":")
        and (item.line_total > 0 or item.unit_price > 0)
    )


def parse_line_item(line: str, index: int) -> Optional[tuple[str, LineItem]]:
    """Try each strategy on one line; returns (strategy name, item) for the first valid match."""
    for name, pattern, builder in LINE_ITEM_STRATEGIES:
        m = pattern.match(line)
        if not m:
            continue
        item = builder(m, index)
        if _is_valid(item):
            return name, item
    return None


def _candidate_lines(text: str) -> list[str]:
    """Lines inside the product table when a table header exists, otherwise every line."""
    lines = [ln.strip() for ln in re.split(r"[\r\n]", text) if ln.strip()]
    for i, line in enumerate(lines):
        if _is_table_header(line):
            logger.debug(f"Product table starts at: {line!r}")
            section: list[str] = []
            for row in lines[i + 1:]:
                if _is_table_end(row):
                    logger.debug(f"Product table ends at: {row!r}")
                    break
                section.append(row)
            return section
    return [ln for ln in lines if not _is_table_end(ln)]


def extract_line_items(text: str) -> list[LineItem]:
    """Extract line items with the strategy list."""
    items: list[LineItem] = []
    for line in _candidate_lines(text):
        if _FIELD_LINE.match(line) or _is_table_header(line):
            continue
        parsed = parse_line_item(line, len(items) + 1)
        if parsed is None:
            continue
        name, item = parsed
        logger.debug(f"Line item via {name}: {item.description} - {item.line_total:.2f}")
        items.append(item)
    return items


# Legacy heuristic from the shop's historical receipts; only used when no row matched.
PRODUCT_KEYWORDS = [
    "camera", "câmera", "sensor", "central", "alarme", "trava",
    "multimidia", "multimídia", "dvd", "gps", "som", "auto falante",
    "módulo", "modulo", "chicote", "antena", "controle", "película", "pelicula",
]
_PRICE = re.compile(r"(?:R\$\s*)?(\d[\d.,]*[.,]\d{2})(?!\d)")


def extract_keyword_items(text: str) -> list[LineItem]:
    """Single-quantity items from lines carrying a product keyword and a price on the same line."""
    items: list[LineItem] = []
    for line in (ln.strip() for ln in text.splitlines()):
        if not line or _FIELD_LINE.match(line):
            continue
        low = line.lower()
        if not any(re.search(rf"\b{re.escape(k)}\b", low) for k in PRODUCT_KEYWORDS):
            continue
        prices = _PRICE.findall(line)
        if not prices:
            continue
        value = parse_decimal(prices[-1]) or 0.0
        if value <= 0:
            continue
        desc = clean_description(_PRICE.sub("", line).replace("R$", ""))
        if len(desc) <= 3:
            continue
        items.append(
            build_line_item(desc, f"PROD-{len(items) + 1}", 1, unit_price=value, line_total=value)
        )
        logger.debug(f"Keyword item: {desc} - {value:.2f}")
    return items


def parse_order_text(text: str, keyword_fallback: bool = True) -> ExtractedOrder:
    """Assemble an ExtractedOrder from the full document text."""
    f = extract_fields(text)
    items = extract_line_items(text)
    warnings: list[str] = []

    if not items and keyword_fallback:
        items = extract_keyword_items(text)
        if items:
            warnings.append("Line items recovered from product keywords; review before saving")

    total = parse_decimal(f["total_value"])
    if not total:
        total = round(sum(i.line_total for i in items), 2)

    if not f["client_name"]:
        warnings.append("Client name not found")
    if not f["order_number"]:
        warnings.append("Order number not found")
    if not items:
        warnings.append("No line items found")
    if warnings:
        logger.warning(f"Extraction warnings: {warnings}")

    return ExtractedOrder(
        client=ClientInfo(
            name=f["client_name"],
            tax_id=f["tax_id"],
            address=f["address"],
            phone=f["phone"],
            email=f["email"],
        ),
        order=OrderInfo(
            number=f["order_number"],
            date=f["order_date"],
            payment_method=f["payment_method"],
            vendor_name=f["vendor"],
            total_value=total,
        ),
        line_items=items,
        vehicle=VehicleInfo(
            make=f["vehicle_make"],
            model=f["vehicle_model"],
            year=f["vehicle_year"],
            plate=f["vehicle_plate"].upper(),
            color=f["vehicle_color"],
        ),
        team=TeamInfo(installer_name=f["installer"], vendor_name=f["vendor"]),
        notes=f["notes"],
        warnings=warnings,
    )
