"""Cube sheet lookup for MovSense.

Standard moving-industry per-unit cubic feet keyed by item label. Used by the
volume aggregator when the vision model did not report a volume. There is no
generic default: an unrecognised label returns None so the caller can flag it.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class CubeSheetRule:
    """Label pattern with base volume and optional size multipliers."""
    pattern: Pattern
    base_cubic_feet: float
    size_multipliers: Dict[str, float] = field(default_factory=dict)
    by_screen_size: bool = False


def _rule(pattern: str, base: float, **multipliers: float) -> CubeSheetRule:
    return CubeSheetRule(re.compile(pattern, re.IGNORECASE), base, multipliers)


# Order matters: first match wins, so specific patterns precede general ones.
CUBE_SHEET_RULES: List[CubeSheetRule] = [
    # Seating
    _rule(r"sofa.*sectional.*piece", 10),
    _rule(r"sofa.*3.*cushion|sectional", 35),
    _rule(r"outdoor sofa|patio sofa", 50),
    _rule(r"sofa|couch", 35, small=0.7, large=1.5, extra_large=2),
    _rule(r"loveseat", 30),
    _rule(r"armchair", 12),
    _rule(r"recliner", 25),
    _rule(r"accent chair|office chair", 12),
    _rule(r"dining chair|kitchen chair", 5),
    _rule(r"bar stool", 5),
    _rule(r"ottoman", 8),
    _rule(r"rocking chair", 15),
    _rule(r"outdoor chair|patio chair|folding chair", 5),

    # Tables
    _rule(r"outdoor dining table", 30),
    _rule(r"dining table", 30, small=0.8, large=1.5),
    _rule(r"coffee table", 12, small=0.7, large=1.5),
    _rule(r"end table|side table|console table", 5),
    _rule(r"kitchen island", 40, small=0.7, large=1.3),
    _rule(r"outdoor table", 15),

    # Beds
    _rule(r"bed.*(single|twin)|(twin|single) bed", 45),
    _rule(r"bed.*(double|full)|(double|full) bed", 50),
    _rule(r"queen.*bed|bed.*queen", 65),
    _rule(r"king.*bed|bed.*king", 70),
    _rule(r"mattress|box spring", 25),

    # Storage
    _rule(r"dresser.*small", 30),
    _rule(r"dresser.*large", 50),
    _rule(r"dresser", 40, small=0.7, large=1.5),
    _rule(r"chest of drawers", 30),
    _rule(r"nightstand", 5),
    _rule(r"wardrobe.*box", 16),
    _rule(r"wardrobe.*small", 20),
    _rule(r"wardrobe.*large", 40),
    _rule(r"wardrobe|armoire", 40, small=0.7, large=1.8),
    _rule(r"bookshelf|bookcase", 20, small=0.7, large=1.5),
    _rule(r"china cabinet", 15, small=0.7, large=1.5),
    _rule(r"file.*cabinet.*large", 20),
    _rule(r"file.*cabinet", 10),
    _rule(r"cabinet", 15),

    # Electronics
    _rule(r"entertainment center|tv stand|media center", 50),
    CubeSheetRule(re.compile(r"\btv\b|television|flat.?screen", re.IGNORECASE), 40, by_screen_size=True),

    # Appliances
    _rule(r"refrigerator|fridge", 35, small=0.7, large=1.5),
    _rule(r"dishwasher", 12),
    _rule(r"washer|washing machine", 25),
    _rule(r"dryer", 25),
    _rule(r"microwave.*cart", 15),
    _rule(r"microwave", 10),
    _rule(r"stove|oven|\brange\b", 15),
    _rule(r"water dispenser", 10),

    # Specialty
    _rule(r"piano.*grand|grand piano", 80),
    _rule(r"piano", 70),
    _rule(r"pool table|billiard table", 40),
    _rule(r"\bsafe\b", 10, large=3),
    _rule(r"treadmill|exercise equipment|gym equipment|exercise bike|elliptical", 30),
    _rule(r"aquarium|fish tank", 20, small=0.5, large=3),

    # Outdoor / garage
    _rule(r"grill|bbq", 25),
    _rule(r"workbench", 50, small=0.7, large=1.5),
    _rule(r"riding.*mower", 150),
    _rule(r"lawn.*mower|mower", 15),
    _rule(r"shop.*vac", 10),
    _rule(r"boat", 250, small=0.7, large=1.5),

    # Misc
    _rule(r"desk", 60, small=0.7, large=1.3),
    _rule(r"mirror", 3, large=5),
    _rule(r"floor lamp|lamp.*floor", 3),
    _rule(r"table lamp|lamp.*table|lamp", 2),
    _rule(r"rug.*small|small.*rug", 3),
    _rule(r"rug", 10, small=0.5, large=2),
    _rule(r"plant", 5, small=0.5, large=3),
    _rule(r"dish.*pack", 10),
    _rule(r"box.*medium", 3),
    _rule(r"\bbox(es)?\b", 6),
    _rule(r"christmas tree", 15),
    _rule(r"storage.*drawer|plastic.*drawer", 8),
]

# (minimum inches, cubic feet), checked top-down
TV_INCH_BUCKETS = [(70, 55.0), (60, 45.0), (50, 40.0), (40, 35.0)]

_INCH_RE = re.compile(r"(\d{2,3})\s*(?:-\s*\d+\s*)?-?\s*(?:\"|''|in\b|inch)", re.IGNORECASE)


def parse_inches(*texts: Optional[str]) -> Optional[int]:
    """First screen size in inches found in any of ``texts``."""
    for text in texts:
        if not text:
            continue
        match = _INCH_RE.search(text)
        if match:
            return int(match.group(1))
    return None


def _size_bucket(size: str) -> Optional[str]:
    # Extra large is tested first so it is not swallowed by "large"
    if "extra large" in size or "extra-large" in size or re.search(r"\bxl\b", size):
        return "extra_large"
    if "small" in size or "compact" in size:
        return "small"
    if "large" in size or "big" in size:
        return "large"
    if "medium" in size:
        return "medium"
    return None


def lookup_cubic_feet(label: str, size: Optional[str] = None) -> Optional[float]:
    """Per-unit cubic feet for ``label`` or None when the label is unknown."""
    if not label:
        return None
    normalized_size = (size or "").lower()

    for rule in CUBE_SHEET_RULES:
        if not rule.pattern.search(label):
            continue

        cubic_feet = rule.base_cubic_feet
        bucket = _size_bucket(normalized_size)
        if bucket and rule.size_multipliers:
            default = 1.5 if bucket == "extra_large" else 1.0
            cubic_feet = rule.base_cubic_feet * rule.size_multipliers.get(bucket, default)

        if rule.by_screen_size:
            inches = parse_inches(size, label)
            if inches is not None:
                for minimum, bucket_cf in TV_INCH_BUCKETS:
                    if inches >= minimum:
                        cubic_feet = bucket_cf
                        break

        return round(cubic_feet, 1)

    logger.debug("cube_sheet_miss", label=label)
    return None
