"""Command-line entry point.

Usage:
    python -m indodoc passport scan.jpg
    python -m indodoc ktp scan.pdf --history history.json --update-history
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from indodoc.common.errors import DocumentOCRError
from indodoc.ktp import KTPOCR
from indodoc.ocr.base import HistoryMap
from indodoc.ocr.config_loader import get_default_config, load_config
from indodoc.passport import PassportOCR

logger = logging.getLogger(__name__)

PIPELINES = {"passport": PassportOCR, "ktp": KTPOCR}


def load_history(path: Optional[Path]) -> HistoryMap:
    if path is None or not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_history(path: Path, history: HistoryMap) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(history, f, indent=2, ensure_ascii=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="indodoc", description="Extract fields from an Indonesian passport or KTP photo"
    )
    parser.add_argument("document", choices=sorted(PIPELINES), help="Document type")
    parser.add_argument("file", type=Path, help="Image or PDF (first page is used)")
    parser.add_argument("--config", type=Path, default=None, help="Configuration YAML")
    parser.add_argument("--history", type=Path, default=None, help="Field history JSON file")
    parser.add_argument(
        "--update-history",
        action="store_true",
        help="Record the extracted values in the history file as confirmed",
    )
    parser.add_argument("--debug-dir", type=Path, default=None, help="Write debug images here")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = load_config(args.config) if args.config else get_default_config()
    if args.debug_dir is not None:
        config.debug.enabled = True
        config.debug.debug_dir = str(args.debug_dir)

    history = load_history(args.history)
    pipeline = PIPELINES[args.document](config=config, history=history)
    try:
        pipeline.mount_file(args.file)
        payload = pipeline.run()
        if args.update_history and args.history is not None:
            save_history(args.history, pipeline.update_history(payload))
    except DocumentOCRError as e:
        logger.error(f"{args.file}: {e}")
        return 1
    finally:
        pipeline.terminate()

    json.dump(payload, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0
