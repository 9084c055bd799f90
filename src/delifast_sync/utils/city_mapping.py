"""UAE emirate to Delifast city ID mapping."""

from typing import Dict, List, Optional

# Shopify uses ISO 3166-2:AE province codes for UAE emirates
EMIRATE_CODE_MAP: Dict[str, int] = {
    "AE-AZ": 5,   # Abu Dhabi
    "AE-AJ": 6,   # Ajman
    "AE-AL": 7,   # Al Ain
    "AE-DU": 8,   # Dubai
    "AE-FU": 9,   # Fujairah
    "AE-RK": 10,  # Ras Al Khaimah
    "AE-SH": 11,  # Sharjah
    "AE-UQ": 12,  # Umm Al Quwain
    "AE-WR": 14,  # Western Region
}

# Emirate names (English and Arabic); insertion order matters for substring matching
EMIRATE_NAME_MAP: Dict[str, int] = {
    "Abu Dhabi": 5,
    "أبوظبي": 5,
    "ابوظبي": 5,
    "Abudhabi": 5,
    "Ajman": 6,
    "عجمان": 6,
    "Al Ain": 7,
    "العين": 7,
    "Alain": 7,
    "Dubai": 8,
    "دبي": 8,
    "Fujairah": 9,
    "الفجيرة": 9,
    "Fujaira": 9,
    "Ras Al Khaimah": 10,
    "رأس الخيمة": 10,
    "راس الخيمة": 10,
    "RAK": 10,
    "Ras al Khaimah": 10,
    "Sharjah": 11,
    "الشارقة": 11,
    "Umm Al Quwain": 12,
    "أم القيوين": 12,
    "ام القيوين": 12,
    "UAQ": 12,
    "Umm al Quwain": 12,
    "Western Region": 14,
    "المنطقة الغربية": 14,
}

# "Unknown" city, used when mapping fails and no fallback is configured
DEFAULT_CITY_ID = 13

MIN_CITY_ID = 5
MAX_CITY_ID = 14


def map_province_to_city(
    province: Optional[str],
    fallback_city_id: int = DEFAULT_CITY_ID,
) -> int:
    """
    Map a Shopify province code or name to a Delifast city ID.

    Resolution order: exact code, exact name, case-insensitive name,
    substring in either direction, numeric city ID in range, fallback.

    Args:
        province: Province code or name from the order address
        fallback_city_id: City ID returned when nothing matches

    Returns:
        Delifast city ID
    """
    if not province:
        return fallback_city_id

    if province in EMIRATE_CODE_MAP:
        return EMIRATE_CODE_MAP[province]

    if province in EMIRATE_NAME_MAP:
        return EMIRATE_NAME_MAP[province]

    province_lower = province.lower().strip()
    if not province_lower:
        return fallback_city_id

    for name, city_id in EMIRATE_NAME_MAP.items():
        if name.lower() == province_lower:
            return city_id

    for name, city_id in EMIRATE_NAME_MAP.items():
        name_lower = name.lower()
        if name_lower in province_lower or province_lower in name_lower:
            return city_id

    try:
        province_num = int(province.strip())
    except ValueError:
        province_num = None

    if province_num is not None and MIN_CITY_ID <= province_num <= MAX_CITY_ID:
        return province_num

    return fallback_city_id


def get_available_cities() -> List[Dict[str, object]]:
    """All cities for selection lists."""
    return [
        {"id": 5, "name": "Abu Dhabi", "name_ar": "أبوظبي"},
        {"id": 6, "name": "Ajman", "name_ar": "عجمان"},
        {"id": 7, "name": "Al Ain", "name_ar": "العين"},
        {"id": 8, "name": "Dubai", "name_ar": "دبي"},
        {"id": 9, "name": "Fujairah", "name_ar": "الفجيرة"},
        {"id": 10, "name": "Ras Al Khaimah", "name_ar": "رأس الخيمة"},
        {"id": 11, "name": "Sharjah", "name_ar": "الشارقة"},
        {"id": 12, "name": "Umm Al Quwain", "name_ar": "أم القيوين"},
        {"id": 13, "name": "Unknown", "name_ar": "غير معروف"},
        {"id": 14, "name": "Western Region", "name_ar": "المنطقة الغربية"},
    ]
