from __future__ import annotations

import json
from pathlib import Path

import streamlit as st

from src.order_pipeline.api_client import has_api_key
from src.order_pipeline.errors import InvalidDocument, RemoteExtractionFailed
from src.order_pipeline.logging_config import setup_logging
from src.order_pipeline.models import ExtractedOrder, OrderDocument
from src.order_pipeline.pipeline import extract_order
from src.order_pipeline.render import format_currency, render_order

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

CLIENT_FIELDS = [
    ("name", "Nome"),
    ("company", "Empresa"),
    ("taxId", "CPF/CNPJ"),
    ("address", "Endereço"),
    ("phone", "Telefone"),
    ("email", "E-mail"),
]
ORDER_FIELDS = [
    ("number", "Número do pedido"),
    ("date", "Data"),
    ("paymentMethod", "Forma de pagamento"),
]
VEHICLE_FIELDS = [
    ("make", "Marca"),
    ("model", "Modelo"),
    ("year", "Ano"),
    ("color", "Cor"),
    ("plate", "Placa"),
]


def _invalid_document_message(e: InvalidDocument) -> str:
    if e.reason == "password":
        return "This PDF is password protected. Remove the password and upload it again."
    return f"This file could not be read as a PDF: {e}"


def _run_extraction(data: bytes, strategy: str, regex_fallback: bool, keyword_fallback: bool) -> dict | None:
    """Extract and return the order as camelCase JSON, or None after showing the error."""
    try:
        try:
            order = extract_order(data, strategy, keyword_fallback=keyword_fallback)
        except RemoteExtractionFailed as e:
            if not regex_fallback:
                st.error(f"LLM extraction failed: {e}")
                return None
            st.warning(f"LLM extraction failed ({e}). Using the regex extractor instead.")
            order = extract_order(data, "regex", keyword_fallback=keyword_fallback)
            order.raw_metadata["strategy"] = "regex_fallback"
    except InvalidDocument as e:
        st.error(_invalid_document_message(e))
        return None
    return order.model_dump(by_alias=True)


def _edited_document(extracted: dict, edits: dict) -> OrderDocument:
    order = ExtractedOrder.model_validate(extracted)
    doc = OrderDocument.from_extracted(
        order,
        vendor_name=edits["vendor"],
        installer_names=edits["installers"],
    )
    doc.client = doc.client.model_copy(update=edits["client"])
    doc.order = doc.order.model_copy(update=edits["order"])
    doc.vehicle = doc.vehicle.model_copy(update=edits["vehicle"])
    doc.notes = edits["notes"]
    return doc


st.set_page_config(
    page_title="Order Receipt UI",
    page_icon="🚗",
    layout="wide",
)
setup_logging("INFO")

st.title("Order Receipt Extraction")
st.caption("Upload a receipt PDF → review the extracted order → download the formatted order PDF.")

with st.sidebar:
    st.header("Settings")
    use_llm = st.toggle("Use LLM extraction", value=False)
    regex_fallback = st.toggle("Fall back to regex if the LLM fails", value=True, disabled=not use_llm)
    keyword_fallback = st.toggle(
        "Recover items from product keywords (if no table row matches)", value=True
    )

    st.divider()
    st.subheader("Document")
    logo_upload = st.file_uploader("Header logo", type=["png", "jpg", "jpeg"])

    st.divider()
    st.subheader("LLM key status")
    if has_api_key():
        st.success("API key detected in environment.")
    else:
        st.warning(
            "No `OPENROUTER_API_KEY` / `OPENAI_API_KEY` found. LLM extraction will fail; "
            "keep it disabled to use the regex extractor."
        )

st.divider()

upload = st.file_uploader("Upload a receipt PDF", type=["pdf"])

col_a, col_b, _ = st.columns([1, 1, 2])
with col_a:
    run_btn = st.button("Extract order", type="primary", disabled=upload is None)
with col_b:
    clear_btn = st.button("Clear")

if clear_btn:
    for key in ("extracted", "source_name", "rendered_pdf", "rendered_json"):
        st.session_state.pop(key, None)
    st.rerun()

if run_btn and upload is not None:
    data = upload.getvalue()
    if len(data) > MAX_UPLOAD_BYTES:
        st.error(f"File is larger than {MAX_UPLOAD_BYTES // (1024 * 1024)} MB.")
    else:
        with st.spinner("Extracting…"):
            extracted = _run_extraction(data, "llm" if use_llm else "regex", regex_fallback, keyword_fallback)
        st.session_state.pop("rendered_pdf", None)
        if extracted is not None:
            st.session_state["extracted"] = extracted
            st.session_state["source_name"] = upload.name

extracted = st.session_state.get("extracted")
if not extracted:
    st.info("Upload a PDF and click **Extract order** to review it.")
    st.stop()

stem = Path(st.session_state.get("source_name") or "order").stem
meta = extracted.get("rawMetadata") or {}

c1, c2, c3, c4 = st.columns(4)
c1.metric("Order", extracted["order"].get("number") or "—")
c2.metric("Line items", len(extracted.get("lineItems") or []))
c3.metric("Total", format_currency(extracted["order"].get("totalValue")))
c4.metric("Strategy", meta.get("strategy", "unknown"))
for warning in extracted.get("warnings") or []:
    st.warning(warning)

review_tab, json_tab = st.tabs(["Review", "Extracted JSON"])

with review_tab:
    with st.form("review"):
        st.subheader("Cliente")
        client = {
            key: st.text_input(label, value=extracted["client"].get(key, ""), key=f"client_{key}")
            for key, label in CLIENT_FIELDS
        }

        st.subheader("Pedido")
        order = {
            key: st.text_input(label, value=extracted["order"].get(key, ""), key=f"order_{key}")
            for key, label in ORDER_FIELDS
        }
        vendor = st.text_input(
            "Vendedor",
            value=extracted["order"].get("vendorName") or extracted["team"].get("vendorName", ""),
        )

        st.subheader("Veículo")
        vehicle_cols = st.columns(len(VEHICLE_FIELDS))
        vehicle = {
            key: col.text_input(label, value=extracted["vehicle"].get(key, ""), key=f"vehicle_{key}")
            for col, (key, label) in zip(vehicle_cols, VEHICLE_FIELDS)
        }

        st.subheader("Itens")
        items = extracted.get("lineItems") or []
        if items:
            st.dataframe(items, use_container_width=True, hide_index=True)
        default_installer = extracted["team"].get("installerName", "")
        installers = [
            st.text_input(
                f"Instalador: {item.get('description', '')}",
                value=default_installer,
                key=f"installer_{i}",
            )
            for i, item in enumerate(items)
        ]

        notes = st.text_area("Observações", value=extracted.get("notes", ""))
        submitted = st.form_submit_button("Render order PDF", type="primary")

    if submitted:
        doc = _edited_document(
            extracted,
            {
                "client": {
                    "name": client["name"],
                    "company": client["company"],
                    "tax_id": client["taxId"],
                    "address": client["address"],
                    "phone": client["phone"],
                    "email": client["email"],
                },
                "order": {
                    "number": order["number"],
                    "date": order["date"],
                    "payment_method": order["paymentMethod"],
                },
                "vehicle": vehicle,
                "vendor": vendor,
                "installers": installers,
                "notes": notes,
            },
        )
        logo = logo_upload.getvalue() if logo_upload is not None else None
        st.session_state["rendered_pdf"] = render_order(doc, logo=logo)
        st.session_state["rendered_json"] = doc.model_dump(by_alias=True)

    rendered = st.session_state.get("rendered_pdf")
    if rendered:
        st.success("Order PDF ready.")
        st.download_button(
            "Download order PDF",
            data=rendered,
            file_name=f"{stem}_order.pdf",
            mime="application/pdf",
        )
        st.download_button(
            "Download reviewed order JSON",
            data=json.dumps(st.session_state.get("rendered_json"), indent=2, ensure_ascii=False).encode("utf-8"),
            file_name=f"{stem}_order_reviewed.json",
            mime="application/json",
        )

with json_tab:
    st.json(extracted)
    st.download_button(
        "Download extracted JSON",
        data=json.dumps(extracted, indent=2, ensure_ascii=False).encode("utf-8"),
        file_name=f"{stem}_order.json",
        mime="application/json",
    )
