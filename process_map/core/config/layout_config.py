from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


DEFAULT_LAYOUT: dict[str, float] = {
    # Pixel geometry of the process-map grid.
    "cell_height": 80,
    "cell_width": 200,
    "header_height": 80,
    "fixed_col_width": 200,
    "node_size": 24,
    "min_height": 600,
    # Window length in calendar months.
    "months": 12,
}

_INTEGER_KEYS = {"months"}


class LayoutConfigError(ValueError):
    pass


def load_layout_file(path: str | Path) -> dict[str, float]:
    """Load layout overrides from a YAML file.

    Format:
      cell_width: 240
      months: 6

    Only keys present in DEFAULT_LAYOUT are accepted; values must be positive numbers.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise LayoutConfigError("layout file must be a mapping of name -> number")

    out: dict[str, float] = {}
    for k, v in raw.items():
        if not isinstance(k, str) or k not in DEFAULT_LAYOUT:
            raise LayoutConfigError(f"unknown layout key: {k!r} (choose from: {', '.join(sorted(DEFAULT_LAYOUT))})")
        out[k] = _positive_number(k, v)
    return out


def merged_layout(overrides: dict[str, Any] | None = None) -> dict[str, float]:
    """Return DEFAULT_LAYOUT merged with optional overrides."""
    merged = dict(DEFAULT_LAYOUT)
    if overrides:
        for k, v in overrides.items():
            merged[k] = v
    return merged


def load_and_merge(layout_file: str | None) -> dict[str, float]:
    if not layout_file:
        return merged_layout()
    overrides = load_layout_file(layout_file)
    return merged_layout(overrides)


def _positive_number(key: str, v: Any) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)) or v <= 0:
        raise LayoutConfigError(f"layout '{key}' must be a positive number")
    if key in _INTEGER_KEYS and not isinstance(v, int):
        raise LayoutConfigError(f"layout '{key}' must be a positive integer")
    return v
