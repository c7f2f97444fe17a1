"""
Tests for single-file processing and the folder batch runner.
"""

import json

import pytest

from order_pipeline import pipeline
from order_pipeline.errors import InvalidDocument, RemoteExtractionFailed
from order_pipeline.pipeline import process_order_pdf, run_on_folder


@pytest.fixture
def input_dir(tmp_path, make_pdf, receipt_lines):
    folder = tmp_path / "input"
    folder.mkdir()
    (folder / "order.pdf").write_bytes(make_pdf(receipt_lines))
    (folder / "broken.pdf").write_bytes(b"not a pdf")
    (folder / "notes.txt").write_text("ignored")
    return folder


def _fail_llm(text, client=None, model=None):
    raise RemoteExtractionFailed("no key")


@pytest.mark.parametrize("workers", [1, 2])
def test_run_on_folder(input_dir, tmp_path, workers):
    out = tmp_path / "output"
    results = run_on_folder(input_dir, out, max_workers=workers)

    assert [r.source_file for r in results] == ["broken.pdf", "order.pdf"]
    broken, good = results

    assert broken.error
    assert broken.order is None
    assert "error" in json.loads((out / "broken_order.json").read_text(encoding="utf-8"))

    assert good.error is None
    assert good.strategy == "regex"
    data = json.loads((out / "order_order.json").read_text(encoding="utf-8"))
    assert data["client"]["name"] == "Maria Souza"
    assert data["lineItems"][0]["lineTotal"] == 300.0
    assert (out / "order_order.pdf").read_bytes().startswith(b"%PDF")
    assert good.output_pdf == str(out / "order_order.pdf")


def test_run_on_folder_without_render(input_dir, tmp_path):
    out = tmp_path / "output"
    run_on_folder(input_dir, out, render=False)
    assert (out / "order_order.json").exists()
    assert not (out / "order_order.pdf").exists()


def test_missing_input_folder_is_created(tmp_path):
    missing = tmp_path / "missing"
    assert run_on_folder(missing, tmp_path / "output") == []
    assert missing.is_dir()


def test_llm_failure_falls_back_to_regex(input_dir, monkeypatch):
    monkeypatch.setattr(pipeline, "extract_order_via_llm", _fail_llm)
    result = process_order_pdf(input_dir / "order.pdf", "llm")
    assert result.strategy == "regex_fallback"
    assert result.order.raw_metadata["strategy"] == "regex_fallback"
    assert result.order.client.name == "Maria Souza"
    assert any("LLM extraction failed" in w for w in result.order.warnings)


def test_llm_failure_without_fallback(input_dir, monkeypatch):
    monkeypatch.setattr(pipeline, "extract_order_via_llm", _fail_llm)
    with pytest.raises(RemoteExtractionFailed):
        process_order_pdf(input_dir / "order.pdf", "llm", fall_back_to_regex=False)


def test_invalid_document_propagates(input_dir):
    with pytest.raises(InvalidDocument):
        process_order_pdf(input_dir / "broken.pdf")
