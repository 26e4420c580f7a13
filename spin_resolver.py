"""Map a product code (SKU) to a wheel segment index."""

import logging
import random

logger = logging.getLogger(__name__)


def match_index(code, segments):
    """Index of the first segment whose id equals ``code`` ignoring case, else None"""
    if code is None or code == '':
        return None
    wanted = str(code).upper()
    for index, segment in enumerate(segments):
        if str(segment.get('id')).upper() == wanted:
            return index
    return None


def resolve(code, segments, rng=None):
    """
    Resolve a spin to a segment index.
    Falls back to a uniformly random index when the code is missing or
    matches no segment. Pass a seeded ``random.Random`` for reproducible results.
    """
    if not segments:
        raise ValueError("cannot resolve a spin without segments")

    index = match_index(code, segments)
    if index is not None:
        logger.info(f"🎯 SKU found: {code!r} -> index {index}")
        return index

    index = (rng or random).randrange(len(segments))
    if code:
        logger.info(f"🎲 SKU {code!r} not found, picking random index {index}")
    else:
        logger.info(f"🎲 No SKU given, picking random index {index}")
    return index
