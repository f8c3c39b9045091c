"""Static gazetteer lookup for reporter-supplied place names.

Coordinates are ``(lon, lat)`` to match the GeoJSON order used by the map.
"""
from __future__ import annotations

import logging
from typing import Optional

from jirani.models import Coordinates

logger = logging.getLogger(__name__)

DEFAULT_CITY = "nairobi"

# Insertion order is the substring tie-break: roads and landmarks come
# before the towns they are named after, city-level names come last.
GAZETTEER: dict[str, Coordinates] = {
    "kikuyu road": (36.7200, -1.2700),
    "thika road": (36.8800, -1.2300),
    "mombasa road": (36.8600, -1.3300),
    "waiyaki way": (36.7800, -1.2600),
    "ngong road": (36.7800, -1.3000),
    "archives": (36.8253, -1.2841),
    "tom mboya street": (36.8270, -1.2833),
    "moi avenue": (36.8236, -1.2843),
    "river road": (36.8289, -1.2829),
    "uhuru park": (36.8172, -1.2893),
    "westlands": (36.8055, -1.2655),
    "sarit centre": (36.8025, -1.2608),
    "yaya centre": (36.7872, -1.2929),
    "kilimani": (36.7850, -1.2890),
    "hurlingham": (36.7960, -1.2955),
    "kileleshwa": (36.7830, -1.2780),
    "lavington": (36.7700, -1.2780),
    "parklands": (36.8160, -1.2600),
    "ngara": (36.8270, -1.2740),
    "upper hill": (36.8150, -1.2990),
    "kibera": (36.7820, -1.3133),
    "south b": (36.8350, -1.3100),
    "south c": (36.8250, -1.3200),
    "langata": (36.7500, -1.3500),
    "karen": (36.7073, -1.3197),
    "gigiri": (36.8050, -1.2330),
    "kasarani": (36.8976, -1.2190),
    "roysambu": (36.8890, -1.2180),
    "githurai": (36.9120, -1.2000),
    "kahawa": (36.9200, -1.1800),
    "eastleigh": (36.8480, -1.2760),
    "pangani": (36.8380, -1.2690),
    "buruburu": (36.8780, -1.2860),
    "umoja": (36.8990, -1.2830),
    "donholm": (36.8900, -1.2980),
    "embakasi": (36.8990, -1.3200),
    "mathare": (36.8580, -1.2600),
    "kawangware": (36.7500, -1.2830),
    "dagoretti": (36.7300, -1.2900),
    "ruaka": (36.7700, -1.2050),
    "rongai": (36.7430, -1.3960),
    "kitengela": (36.9580, -1.4760),
    "ngong": (36.6530, -1.3520),
    "kikuyu": (36.6630, -1.2460),
    "juja": (37.0110, -1.1020),
    "thika": (37.0690, -1.0330),
    "mombasa": (39.6682, -4.0435),
    "kisumu": (34.7680, -0.0917),
    "nakuru": (36.0800, -0.3031),
    "eldoret": (35.2698, 0.5143),
    "nairobi cbd": (36.8219, -1.2864),
    "cbd": (36.8219, -1.2864),
    "nairobi": (36.8219, -1.2921),
}


def resolve(text: Optional[str]) -> Optional[Coordinates]:
    """Map a free-text place to ``(lon, lat)``.

    Returns None only for empty input. Anything unrecognised lands on the
    default city so the report still gets a marker.
    """
    if not text or not text.strip():
        return None

    needle = text.strip().lower()

    exact = GAZETTEER.get(needle)
    if exact is not None:
        return exact

    for name, coords in GAZETTEER.items():
        if name in needle or needle in name:
            logger.debug("Resolved %r via substring match on %r", text, name)
            return coords

    logger.info("No gazetteer match for %r, using %s centroid", text, DEFAULT_CITY)
    return GAZETTEER[DEFAULT_CITY]
