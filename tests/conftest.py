from __future__ import annotations

import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

# Ensure we can import from src/ without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))
