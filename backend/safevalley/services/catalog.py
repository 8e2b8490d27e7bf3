"""Hazard type display metadata and the travel-mode category table."""

from typing import Dict, FrozenSet, List, Optional

from safevalley.models.hazard_report import HazardType

ALL_HAZARD_TYPES: FrozenSet[HazardType] = frozenset(HazardType)

# Icon and RGBA overlay colour used by the map widget
HAZARD_STYLES: Dict[HazardType, Dict[str, str]] = {
    HazardType.CRIME: {"icon": "🚨", "color": "rgba(239,68,68,0.5)"},
    HazardType.LOAD_SHEDDING: {"icon": "⚡", "color": "rgba(251,191,36,0.5)"},
    HazardType.POTHOLE: {"icon": "🕳️", "color": "rgba(59,130,246,0.5)"},
    HazardType.DUMPING: {"icon": "🗑️", "color": "rgba(34,197,94,0.5)"},
    HazardType.WATER_LEAK: {"icon": "💧", "color": "rgba(6,182,212,0.5)"},
    HazardType.SEWERAGE_LEAK: {"icon": "🚰", "color": "rgba(146,64,14,0.5)"},
    HazardType.FLOODING: {"icon": "🌊", "color": "rgba(79,70,229,0.5)"},
}

TRAVEL_MODE_HAZARDS: Dict[str, FrozenSet[HazardType]] = {
    "walking": frozenset({
        HazardType.CRIME,
        HazardType.LOAD_SHEDDING,
        HazardType.DUMPING,
        HazardType.WATER_LEAK,
        HazardType.SEWERAGE_LEAK,
        HazardType.FLOODING,
    }),
    "cycling": frozenset({
        HazardType.CRIME,
        HazardType.LOAD_SHEDDING,
        HazardType.POTHOLE,
        HazardType.DUMPING,
        HazardType.WATER_LEAK,
        HazardType.FLOODING,
    }),
    "car": frozenset({
        HazardType.CRIME,
        HazardType.LOAD_SHEDDING,
        HazardType.DUMPING,
        HazardType.FLOODING,
    }),
    "taxi": frozenset({
        HazardType.CRIME,
        HazardType.LOAD_SHEDDING,
    }),
}


def allowed_hazard_types(
    travel_mode: Optional[str],
    table: Optional[Dict[str, FrozenSet[HazardType]]] = None,
) -> FrozenSet[HazardType]:
    """Hazard types shown for a travel mode.

    Unknown keys (including ``"all"`` and ``None``) allow every type.
    """
    table = TRAVEL_MODE_HAZARDS if table is None else table
    if travel_mode is None:
        return ALL_HAZARD_TYPES
    return table.get(travel_mode.strip().lower(), ALL_HAZARD_TYPES)


def travel_mode_entries() -> List[Dict[str, object]]:
    """Category table in a stable, serializable order."""
    return [
        {
            "key": key,
            "hazard_types": sorted(types, key=lambda t: t.value),
        }
        for key, types in sorted(TRAVEL_MODE_HAZARDS.items())
    ]


def hazard_type_entries() -> List[Dict[str, object]]:
    return [
        {"type": hazard_type, **HAZARD_STYLES[hazard_type]}
        for hazard_type in HazardType
    ]
