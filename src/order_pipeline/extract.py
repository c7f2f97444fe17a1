"""
PDF text acquisition with pdfplumber.
Pages are read in order and joined with newlines; unreadable or encrypted files raise InvalidDocument.
"""
from __future__ import annotations

from io import BytesIO
from typing import Iterator

import pdfplumber
from loguru import logger
from pdfminer.pdfdocument import PDFPasswordIncorrect

from .errors import InvalidDocument


def _is_password_error(exc: BaseException) -> bool:
    """pdfplumber may wrap pdfminer errors, so look through args and the cause chain."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        err = stack.pop()
        if id(err) in seen:
            continue
        seen.add(id(err))
        if isinstance(err, PDFPasswordIncorrect) or "password" in str(err).lower():
            return True
        stack.extend(a for a in err.args if isinstance(a, BaseException))
        if err.__cause__ is not None:
            stack.append(err.__cause__)
        if err.__context__ is not None:
            stack.append(err.__context__)
    return False


def _iter_page_texts(pdf) -> Iterator[str]:
    for page in pdf.pages:
        yield page.extract_text() or ""


def extract_text_from_bytes(file_bytes: bytes) -> tuple[str, int]:
    """
    Extract the full text of a PDF held in memory.
    Returns (text, page_count). Each page contributes its text followed by a newline.
    """
    if not file_bytes:
        raise InvalidDocument("Empty file: no PDF data received")

    try:
        with pdfplumber.open(BytesIO(file_bytes)) as pdf:
            page_count = len(pdf.pages)
            if page_count == 0:
                raise InvalidDocument("PDF has no pages")
            text = "".join(t + "\n" for t in _iter_page_texts(pdf))
    except InvalidDocument:
        raise
    except Exception as e:
        if _is_password_error(e):
            raise InvalidDocument("PDF is password protected", reason="password") from e
        raise InvalidDocument(f"Not a valid PDF or file is corrupt: {e}") from e

    logger.debug(f"Extracted {len(text)} characters from {page_count} page(s)")
    return text, page_count
