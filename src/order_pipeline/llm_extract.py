"""
LLM-based order extraction: the document text is sent to a chat completion that must answer
with the ExtractedOrder JSON shape. Alternate strategy to the regex parsers, chosen by the caller.
Every failure raises RemoteExtractionFailed; nothing is retried here.
"""
from __future__ import annotations

import json
import re
from typing import Any, Optional

from loguru import logger
from openai import OpenAIError

from .errors import RemoteExtractionFailed
from .models import ExtractedOrder, LineItem
from .parsers import build_line_item, parse_decimal

SYSTEM_PROMPT = """You are an expert at extracting data from Brazilian receipt and order PDFs of an automotive accessories shop.

Read the raw text extracted from the PDF and return EXACTLY the information below as JSON.

RULES:
1. If a field is not present, return an empty string "" (or an empty array for lineItems). Do NOT invent data.
2. Extract ALL product/service rows into lineItems. Skip header rows, subtotals and totals.
3. Amounts are numbers with a dot as decimal separator (R$ 1.234,56 -> 1234.56). discountPercent is a percentage (10% -> 10).
4. If the client is "Consumidor Final" and there is no specific name, use "Consumidor Final".
5. Look for the data even when it is laid out irregularly.

Return ONLY this JSON object, no markdown, no explanation:
{
  "client": {"name": "", "taxId": "", "address": "", "phone": "", "email": ""},
  "order": {"number": "", "date": "", "paymentMethod": "", "vendorName": "", "totalValue": 0},
  "lineItems": [
    {"description": "", "code": "", "quantity": 1, "unitPrice": 0, "discountPercent": 0, "lineTotal": 0}
  ],
  "vehicle": {"make": "", "model": "", "year": "", "plate": "", "color": ""},
  "team": {"installerName": "", "vendorName": ""},
  "notes": ""
}"""

_STRING_BLOCKS = ("client", "vehicle", "team")


def _string_block(data: dict, key: str) -> dict[str, str]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise RemoteExtractionFailed(f"LLM response field '{key}' is not an object")
    return {k: "" if v is None else str(v).strip() for k, v in value.items()}


def _line_items(data: dict) -> list[LineItem]:
    raw_items = data.get("lineItems") or []
    if not isinstance(raw_items, list):
        raise RemoteExtractionFailed("LLM response field 'lineItems' is not a list")
    items: list[LineItem] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise RemoteExtractionFailed("LLM response line item is not an object")
        desc = str(raw.get("description") or "").strip()
        if not desc:
            continue
        code = str(raw.get("code") or "").strip()
        if code.lower() in ("null", "n/a"):
            code = ""
        items.append(
            build_line_item(
                description=desc,
                code=code or f"PROD-{len(items) + 1}",
                quantity=parse_decimal(raw.get("quantity")),
                unit_price=parse_decimal(raw.get("unitPrice")),
                discount_percent=parse_decimal(raw.get("discountPercent")),
                line_total=parse_decimal(raw.get("lineTotal")),
            )
        )
    return items


def _build_order(data: dict) -> ExtractedOrder:
    items = _line_items(data)
    order = data.get("order") or {}
    if not isinstance(order, dict):
        raise RemoteExtractionFailed("LLM response field 'order' is not an object")
    order_block = {k: "" if v is None else v for k, v in order.items() if k != "totalValue"}
    order_block = {k: str(v).strip() for k, v in order_block.items()}
    order_block["totalValue"] = parse_decimal(order.get("totalValue")) or round(
        sum(i.line_total for i in items), 2
    )

    payload = {key: _string_block(data, key) for key in _STRING_BLOCKS}
    payload.update(
        order=order_block,
        lineItems=items,
        notes=str(data.get("notes") or "").strip(),
        rawMetadata={"strategy": "llm"},
    )
    return ExtractedOrder.model_validate(payload)


def order_from_payload(data: Any) -> ExtractedOrder:
    """Validate a decoded LLM answer into an ExtractedOrder, completing line item amounts."""
    if not isinstance(data, dict):
        raise RemoteExtractionFailed("LLM response is not a JSON object")
    try:
        return _build_order(data)
    except (ValueError, OverflowError) as e:
        raise RemoteExtractionFailed(f"LLM response does not match the order schema: {e}") from e


def extract_order_via_llm(
    text: str,
    client: Optional[Any] = None,
    model: Optional[str] = None,
) -> ExtractedOrder:
    """
    Extract an order from raw document text with one chat completion call.
    client defaults to the shared OpenAI client; raises RemoteExtractionFailed on any failure.
    """
    from .api_client import get_model_name, get_openai_client

    client = client or get_openai_client()
    if client is None:
        raise RemoteExtractionFailed("No OPENROUTER_API_KEY / OPENAI_API_KEY configured")

    model = model or get_model_name()
    user = f"""Extract the order data from this receipt text.

RAW RECEIPT TEXT:
{text[:12000]}"""

    logger.info(f"Requesting LLM extraction with model {model} ({len(text)} characters)")
    try:
        resp = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user},
            ],
            temperature=0.1,
            max_tokens=2000,
        )
    except OpenAIError as e:
        raise RemoteExtractionFailed(f"LLM request failed: {e}") from e

    try:
        content = (resp.choices[0].message.content or "").strip()
    except (AttributeError, IndexError) as e:
        raise RemoteExtractionFailed("LLM response has no message content") from e
    if "```" in content:
        content = re.sub(r"```(?:json)?\s*", "", content).replace("```", "").strip()

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise RemoteExtractionFailed(f"LLM response is not valid JSON: {e}") from e

    order = order_from_payload(data)
    logger.info(f"LLM extraction returned {len(order.line_items)} line item(s)")
    return order
