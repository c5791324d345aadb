#!/usr/bin/env python
"""
Command-line interface for the document structure OCR engine.

Usage:
    docstruct --input <pdf_or_image_or_folder> --output <output_dir> [options]

Examples:
    # Recognize a scanned PDF
    docstruct --input report.pdf --output ./output

    # English and German, two workers, only pages 1-3
    docstruct --input report.pdf --output ./output --lang eng+deu --workers 2 --pages 1-3
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from .config import get_options
from .engine import OCREngine
from .errors import AbortError, OCREngineError
from .utils.export import MarkdownExporter
from .utils.hierarchy import BlockType
from .utils.tables import extract_table
from .utils.io import load_pages, save_json

logger = logging.getLogger("docstruct")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="docstruct",
        description="Recognize page images and recover their document structure",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Recognize a PDF:
    docstruct --input report.pdf --output ./output

  Recognize a folder of page scans in file-name order:
    docstruct --input ./scans --output ./output --workers 4
        """
    )

    parser.add_argument("--input", "-i", required=True,
                        help="Input PDF, image, or folder of images")
    parser.add_argument("--output", "-o", required=True,
                        help="Output directory for document.json and document.md")

    parser.add_argument("--lang", default=None,
                        help="Recognition language(s), '+'-joined (default: eng)")
    parser.add_argument("--workers", type=int, default=None,
                        help="Number of recognition workers (default: CPU count - 1)")
    parser.add_argument("--psm", type=int, default=None,
                        help="Tesseract page segmentation mode (default: 3)")
    parser.add_argument("--oem", type=int, default=None,
                        help="Tesseract engine mode (default: 1)")
    parser.add_argument("--pages", type=str, default=None,
                        help="Page range to process, e.g., '1-5' or '1,3,5' (default: all)")
    parser.add_argument("--dpi", type=int, default=300,
                        help="DPI for PDF to image conversion (default: 300)")
    parser.add_argument("--timeout", type=int, default=None,
                        help="Per-image recognition timeout in milliseconds")

    parser.add_argument("--no-preprocessing", action="store_true",
                        help="Disable image preprocessing")
    parser.add_argument("--no-enhance", action="store_true",
                        help="Use the basic contrast stretch instead of adaptive enhancement")
    parser.add_argument("--no-structure", action="store_true",
                        help="Disable block classification")
    parser.add_argument("--post-process", action="store_true",
                        help="Fix hyphenation and digit confusions in recognized text")

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress non-error output")
    parser.add_argument("--version", action="version", version="%(prog)s 1.0.0")

    return parser


def build_options(args):
    overrides = {
        "preprocess_image": not args.no_preprocessing,
        "enhance_image": not args.no_enhance,
        "detect_structure": not args.no_structure,
        "post_process": args.post_process,
    }
    if args.lang:
        overrides["language"] = args.lang
    if args.workers is not None:
        overrides["worker_count"] = args.workers
    if args.psm is not None:
        overrides["page_segmentation_mode"] = args.psm
    if args.oem is not None:
        overrides["engine_mode"] = args.oem
    if args.timeout is not None:
        overrides["timeout_ms"] = args.timeout
    return get_options(**overrides)


def run_pipeline(args) -> int:
    """Recognize every page, extract structure and write the outputs."""
    start_time = time.time()
    output_dir = Path(args.output)

    pages = load_pages(args.input, dpi=args.dpi, page_range=args.pages)
    if not pages:
        logger.error("No pages to process")
        return 1
    logger.info(f"Loaded {len(pages)} page(s): {[p.number for p in pages]}")

    options = build_options(args)
    with OCREngine(options) as engine:
        results = []
        for index, page in enumerate(pages, start=1):
            logger.info(f"Recognizing page {page.number} ({index}/{len(pages)})")
            results.append(engine.process_image(page.image))
        document = engine.extract_structured_content([r.text for r in results])

    page_records = []
    for page, result in zip(pages, results):
        record = result.to_dict()
        record["source_page"] = page.number
        record["tables"] = [
            extract_table(block, row_gap=options.table_row_gap).to_dict()
            for block in result.blocks_of_type(BlockType.TABLE)
        ]
        page_records.append(record)

    json_path = save_json({
        "source": str(args.input),
        "document": document.to_dict(),
        "pages": page_records,
    }, output_dir / "document.json")
    logger.info(f"Saved JSON: {json_path}")

    exporter = MarkdownExporter(table_row_gap=options.table_row_gap)
    md_path = exporter.export(document, output_dir / "document.md", pages=results)

    if not args.quiet:
        elapsed = time.time() - start_time
        confidence = sum(r.confidence for r in results) / len(results)
        print("\n" + "=" * 60)
        print("OCR COMPLETE")
        print("=" * 60)
        print(f"Source: {args.input}")
        print(f"Output: {json_path}, {md_path}")
        print(f"Pages processed: {len(results)}")
        print(f"Processing time: {elapsed:.2f}s")
        print(f"Mean confidence: {confidence:.1f}")
        print(f"Title: {document.title or '-'}")
        print(f"Top-level sections: {len(document.sections)}")
        print("=" * 60)

    return 0


def main(argv=None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    try:
        sys.exit(run_pipeline(args))
    except (KeyboardInterrupt, AbortError):
        logger.info("Interrupted by user")
        sys.exit(130)
    except (OCREngineError, OSError, ValueError, RuntimeError) as e:
        logger.error(f"Processing failed: {e}")
        if args.verbose:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
