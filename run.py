#!/usr/bin/env python3
"""
Order receipt PDF pipeline - CLI entry point.

Usage:
  python run.py                     # Process ./input, output to ./output
  python run.py --input Receipts --output ./output
  python run.py --strategy llm                     # LLM extraction, regex if it fails
  python run.py --strategy llm --no-regex-fallback # LLM only; failures are recorded per file
  python run.py --no-render                        # JSON only, no formatted order PDF
  python run.py --logo assets/logo.png -j 4

Drop receipt PDFs into the input folder and run to generate order JSON and a formatted order PDF per file.
"""
from __future__ import annotations

import argparse
from pathlib import Path

from src.order_pipeline.logging_config import setup_logging
from src.order_pipeline.pipeline import STRATEGIES, run_on_folder


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Extract orders from receipt PDFs and render them as formatted order PDFs."
    )
    parser.add_argument(
        "--input",
        "-i",
        type=str,
        default="./input",
        help="Input directory containing receipt PDFs (default: ./input)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="./output",
        help="Output directory for order JSON and PDF files (default: ./output)",
    )
    parser.add_argument(
        "--strategy",
        choices=STRATEGIES,
        default="regex",
        help="Extraction strategy (default: regex)",
    )
    parser.add_argument(
        "--no-regex-fallback",
        action="store_true",
        help="Do not rerun the regex strategy when LLM extraction fails",
    )
    parser.add_argument(
        "--no-keyword-fallback",
        action="store_true",
        help="Do not recover line items from product keywords when no table row matches",
    )
    parser.add_argument(
        "--no-render",
        action="store_true",
        help="Only write JSON, skip rendering the formatted order PDF",
    )
    parser.add_argument(
        "--logo",
        type=str,
        default=None,
        help="Image file placed in the header of rendered PDFs",
    )
    parser.add_argument(
        "--parallel",
        "-j",
        type=int,
        default=1,
        metavar="N",
        help="Process N PDFs in parallel (default: 1)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Debug logging",
    )
    args = parser.parse_args()
    setup_logging("DEBUG" if args.verbose else "INFO")

    input_path = Path(args.input)
    output_path = Path(args.output)

    if not input_path.exists():
        input_path.mkdir(parents=True, exist_ok=True)
        print(f"Created input directory: {input_path.absolute()}. Add PDFs and run again.")
        return

    results = run_on_folder(
        input_path,
        output_path,
        strategy=args.strategy,
        render=not args.no_render,
        max_workers=max(1, args.parallel),
        fall_back_to_regex=not args.no_regex_fallback,
        keyword_fallback=not args.no_keyword_fallback,
        logo=args.logo,
    )

    failed = [r for r in results if r.error]
    print(f"Processed {len(results)} receipt(s). Output in: {output_path.absolute()}")
    for r in results:
        if r.error:
            print(f"  - {r.source_file}: ERROR {r.error}")
        else:
            print(f"  - {r.source_file}: {len(r.order.line_items)} line items ({r.strategy})")
    if failed:
        print(f"Failed: {len(failed)} of {len(results)} file(s)")


if __name__ == "__main__":
    main()
