"""Threshold, sort and format classifier output for display."""

from __future__ import annotations

from typing import Iterable, Optional

import numpy as np

from models import Category


def filter_and_sort(categories: Iterable[Category], threshold: float) -> list[Category]:
    """Keep entries scoring strictly above ``threshold``, best first.

    Ties keep the order the classifier produced them in.
    """
    kept = [c for c in categories if c.score > threshold]
    return sorted(kept, key=lambda c: c.score, reverse=True)


def format_score(score: float) -> str:
    # Model scores are float32; print the shortest form of that value.
    return str(np.float32(score))


def format_categories(categories: Iterable[Category]) -> str:
    return "\n".join(f"{c.label} -> {format_score(c.score)}" for c in categories)


def summarize(categories: Iterable[Category], threshold: float) -> Optional[str]:
    """Return the display text for one classification, or None if nothing passed."""
    kept = filter_and_sort(categories, threshold)
    if not kept:
        return None
    return format_categories(kept)
