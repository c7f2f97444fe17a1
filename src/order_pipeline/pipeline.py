"""
End-to-end pipeline: PDF bytes -> text -> regex or LLM extraction -> ExtractedOrder -> rendered order PDF.
The LLM strategy is only used when asked for; if it fails the regex strategy is rerun on request.
"""
from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .errors import RemoteExtractionFailed
from .extract import extract_text_from_bytes
from .llm_extract import extract_order_via_llm
from .models import ExtractedOrder, OrderDocument, ProcessedOrder
from .parsers import parse_order_text
from .render import LogoSource, render_order

STRATEGIES = ("regex", "llm")


def extract_order(
    file_bytes: bytes,
    strategy: str = "regex",
    *,
    keyword_fallback: bool = True,
    debug: bool = False,
    llm_client: Optional[Any] = None,
) -> ExtractedOrder:
    """
    Extract a structured order from PDF bytes.
    Raises InvalidDocument for unreadable input and, with strategy="llm", RemoteExtractionFailed.
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown strategy {strategy!r}; expected one of {STRATEGIES}")

    text, pages = extract_text_from_bytes(file_bytes)
    if strategy == "llm":
        order = extract_order_via_llm(text, client=llm_client)
    else:
        order = parse_order_text(text, keyword_fallback=keyword_fallback)

    order.raw_metadata.update(strategy=strategy, pages=pages, text_length=len(text))
    if debug:
        order.raw_metadata["full_text"] = text
    logger.info(
        f"Extracted order {order.order.number or '(no number)'} with {strategy}: "
        f"{len(order.line_items)} item(s), {len(order.warnings)} warning(s)"
    )
    return order


def process_order_pdf(
    pdf_path: str | Path,
    strategy: str = "regex",
    *,
    fall_back_to_regex: bool = True,
    keyword_fallback: bool = True,
) -> ProcessedOrder:
    """
    Process a single order PDF and return the extraction result.
    When the LLM strategy fails and fall_back_to_regex is True, the regex strategy is used instead.
    """
    path = Path(pdf_path)
    data = path.read_bytes()
    used = strategy
    try:
        order = extract_order(data, strategy, keyword_fallback=keyword_fallback)
    except RemoteExtractionFailed as e:
        if strategy != "llm" or not fall_back_to_regex:
            raise
        logger.warning(f"{path.name}: LLM extraction failed ({e}); rerunning with regex")
        order = extract_order(data, "regex", keyword_fallback=keyword_fallback)
        used = "regex_fallback"
        order.raw_metadata["strategy"] = used
        order.warnings.append(f"LLM extraction failed: {e}")

    return ProcessedOrder(source_file=path.name, strategy=used, order=order)


def _write_json(out_file: Path, payload: dict) -> None:
    with open(out_file, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


def _process_one(
    pdf_path: Path,
    output_path: Path,
    strategy: str,
    fall_back_to_regex: bool,
    keyword_fallback: bool,
    render: bool,
    logo: Optional[LogoSource],
) -> ProcessedOrder:
    """Process a single PDF. Used by parallel executor."""
    json_file = output_path / f"{pdf_path.stem}_order.json"
    try:
        result = process_order_pdf(
            pdf_path,
            strategy,
            fall_back_to_regex=fall_back_to_regex,
            keyword_fallback=keyword_fallback,
        )
        _write_json(json_file, result.order.model_dump(by_alias=True))
        if render:
            pdf_file = output_path / f"{pdf_path.stem}_order.pdf"
            pdf_file.write_bytes(render_order(OrderDocument.from_extracted(result.order), logo=logo))
            result.output_pdf = str(pdf_file)
        return result
    except Exception as e:
        logger.error(f"{pdf_path.name}: {e}")
        _write_json(
            json_file,
            {"sourceFile": pdf_path.name, "strategy": strategy, "error": str(e)},
        )
        return ProcessedOrder(source_file=pdf_path.name, strategy=strategy, error=str(e))


def run_on_folder(
    input_dir: str | Path,
    output_dir: str | Path,
    strategy: str = "regex",
    render: bool = True,
    max_workers: int = 1,
    fall_back_to_regex: bool = True,
    keyword_fallback: bool = True,
    logo: Optional[LogoSource] = None,
) -> list[ProcessedOrder]:
    """Process all PDFs in input_dir, writing order JSON (and the rendered PDF) per file to output_dir.
    When max_workers > 1, processes PDFs in parallel; results keep the input order."""
    input_path = Path(input_dir)
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    if not input_path.exists():
        input_path.mkdir(parents=True, exist_ok=True)
        return []

    pdfs = sorted(input_path.glob("*.pdf"))
    if not pdfs:
        return []

    args = (output_path, strategy, fall_back_to_regex, keyword_fallback, render, logo)
    if max_workers <= 1:
        return [_process_one(p, *args) for p in pdfs]

    results: list[ProcessedOrder] = [None] * len(pdfs)  # type: ignore
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_idx = {executor.submit(_process_one, p, *args): i for i, p in enumerate(pdfs)}
        for future in as_completed(future_to_idx):
            idx = future_to_idx[future]
            try:
                results[idx] = future.result()
            except Exception as e:
                results[idx] = ProcessedOrder(source_file=pdfs[idx].name, strategy=strategy, error=str(e))
    return results
