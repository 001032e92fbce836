"""
TR-55 runoff curve numbers.

Curve numbers by land-use category and hydrologic soil group (HSG), from
NRCS Technical Release 55, table 2-2, plus the percentage-weighted blend used
to derive a composite CN for a watershed.
"""

import math
import uuid
from dataclasses import dataclass, field

HSG_VALUES = ("A", "B", "C", "D")


@dataclass(frozen=True)
class LandUseCategory:
    id: str
    label: str
    cn: dict[str, int]


def _category(id: str, label: str, a: int, b: int, c: int, d: int) -> LandUseCategory:
    return LandUseCategory(id=id, label=label, cn={"A": a, "B": b, "C": c, "D": d})


TR55_CATEGORIES: list[LandUseCategory] = [
    _category("open_space_poor", "Open space (lawns, parks) - Poor condition (<50% grass)", 68, 79, 86, 89),
    _category("open_space_fair", "Open space (lawns, parks) - Fair condition (50-75% grass)", 49, 69, 79, 84),
    _category("open_space_good", "Open space (lawns, parks) - Good condition (>75% grass)", 39, 61, 74, 80),
    _category("impervious", "Impervious (paved parking, roofs, driveways)", 98, 98, 98, 98),
    _category("streets_paved_curb", "Streets and roads - Paved with curbs & sewers", 98, 98, 98, 98),
    _category("streets_paved_ditch", "Streets and roads - Paved with open ditches", 83, 89, 92, 93),
    _category("streets_gravel", "Streets and roads - Gravel", 76, 85, 89, 91),
    _category("streets_dirt", "Streets and roads - Dirt", 72, 82, 87, 89),
    _category("commercial", "Urban - Commercial and business", 89, 92, 94, 95),
    _category("industrial", "Urban - Industrial", 81, 88, 91, 93),
    _category("residential_1_8", "Residential - 1/8 acre or less (65% imp)", 77, 85, 90, 92),
    _category("residential_1_4", "Residential - 1/4 acre (38% imp)", 61, 75, 83, 87),
    _category("residential_1_3", "Residential - 1/3 acre (30% imp)", 57, 72, 81, 86),
    _category("residential_1_2", "Residential - 1/2 acre (25% imp)", 54, 70, 80, 85),
    _category("residential_1", "Residential - 1 acre (20% imp)", 51, 68, 79, 84),
    _category("residential_2", "Residential - 2 acres (12% imp)", 46, 65, 77, 82),
    _category("newly_graded", "Developing urban - Newly graded areas", 77, 86, 91, 94),
    _category("meadow", "Agriculture - Meadow (continuous grass)", 30, 58, 71, 78),
    _category("woods_poor", "Woods - Poor (forest litter, small trees, brush)", 45, 66, 77, 83),
    _category("woods_fair", "Woods - Fair (grazed but not burned)", 36, 60, 73, 79),
    _category("woods_good", "Woods - Good (protected from grazing)", 30, 55, 70, 77),
    _category("pasture_poor", "Pasture - Poor (<50% ground cover)", 68, 79, 86, 89),
    _category("pasture_fair", "Pasture - Fair (50-75% ground cover)", 49, 69, 79, 84),
    _category("pasture_good", "Pasture - Good (>75% ground cover)", 39, 61, 74, 80),
]

CATEGORIES_BY_ID = {category.id: category for category in TR55_CATEGORIES}


@dataclass
class LandUseItem:
    """A share of the watershed in one land-use category and soil group."""

    category_id: str
    hsg: str
    percentage: float
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


def get_cn(category_id: str, hsg: str) -> int:
    """Curve number for a category and soil group; 0 for an unknown category or HSG."""
    category = CATEGORIES_BY_ID.get(category_id)
    if category is None:
        return 0
    return category.cn.get(hsg.upper(), 0)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def composite_cn(items: list[LandUseItem], previous_cn: float) -> float:
    """
    Percentage-weighted mean curve number, rounded to an integer.

    Returns ``previous_cn`` unchanged when there are no items, and 0 when
    the items' percentages sum to zero.

    Example:
        >>> composite_cn([LandUseItem("woods_good", "C", 50), LandUseItem("impervious", "C", 50)], 75)
        84
    """
    if not items:
        return previous_cn

    total_pct = sum(item.percentage for item in items)
    if total_pct <= 0:
        return 0
    weighted = sum(get_cn(item.category_id, item.hsg) * item.percentage for item in items)
    return _round_half_up(weighted / total_pct)
