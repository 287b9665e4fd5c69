"""Seed script: creates the demo company, its users and a sample approval rule.

Idempotent: does nothing if the demo company already exists.
Run from backend/:  python scripts/seed.py
"""
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.core.logging import setup_logging  # noqa: E402
from app.core.seed import run_seed  # noqa: E402

if __name__ == "__main__":
    setup_logging()
    run_seed()
