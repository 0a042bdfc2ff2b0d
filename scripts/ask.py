#!/usr/bin/env python3
"""Asks the assistant a single question from the command line and prints the JSON answer."""

from __future__ import annotations

import argparse
import json
import logging
import os
from pathlib import Path
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dotenv import load_dotenv
from porcelain_assistant.service import build_assistant


def main() -> int:
    load_dotenv(ROOT_DIR / ".env")
    logging.basicConfig(level=os.getenv("PA_LOG_LEVEL", "WARNING").upper())

    parser = argparse.ArgumentParser(description="Ask the RAK Porcelain assistant one question.")
    parser.add_argument("question", help="Question text.")
    args = parser.parse_args()

    assistant = build_assistant(root_dir=ROOT_DIR)
    try:
        result = assistant.answer([], args.question)
    finally:
        assistant.close()

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 1 if result.get("error_code") else 0


if __name__ == "__main__":
    raise SystemExit(main())
