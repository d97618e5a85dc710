"""
Field Normalizer
----------------
Turns raw item records into comparable, canonical fields.
Pure functions only: no network, no storage, never raises on missing data.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple, Union

from ..common.schemas import ExtractedAttributes, ItemRecord, ItemType

UNKNOWN = "unknown"

# Thai runs stay whole: vowel and tone marks are not \w
_TOKEN_RE = re.compile(r"[\w\u0E00-\u0E7F]+", re.UNICODE)

# scripts written without spaces between words; aliases in them match as substrings
_UNSPACED_RE = re.compile(r"[\u0E00-\u0E7F]")

# canonical category -> aliases (also used for free-text category detection)
CATEGORY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "wallet": ("wallet", "purse", "billfold", "card holder", "coin purse",
               "กระเป๋าสตางค์", "กระเป๋าตัง", "สตางค์", "ตังค์"),
    "phone": ("phone", "mobile", "smartphone", "cell phone", "iphone", "samsung",
              "android", "oppo", "vivo", "xiaomi", "realme", "huawei",
              "โทรศัพท์", "โทรศัพ", "มือถือ"),
    "keys": ("keys", "key", "keychain", "key ring", "car keys", "house keys", "remote",
             "กุญแจ", "พวงกุญแจ", "ลูกกุญแจ", "กุญแจรถ", "กุญแจบ้าน", "รีโมท"),
    "bag": ("bag", "backpack", "pouch", "tote", "handbag", "rucksack", "shoulder bag",
            "กระเป๋า", "กระเป๋าเป้", "กระเป๋าสะพาย", "เป้"),
    "electronics": ("electronics", "laptop", "tablet", "ipad", "headphones", "earbuds",
                    "airpods", "charger", "powerbank", "power bank", "camera",
                    "mouse", "keyboard", "usb", "flash drive",
                    "อิเล็กทรอนิกส์", "ไอแพด", "แท็บเล็ต", "หูฟัง", "แบตสำรอง", "สายชาร์จ",
                    "เมาส์", "คีย์บอร์ด", "กล้อง", "พัดลม"),
    "documents": ("documents", "document", "id card", "student card", "passport",
                  "notebook", "book", "license", "driving license",
                  "เอกสาร", "บัตร", "บัตรนักเรียน", "บัตรประชาชน", "ใบขับขี่", "สมุดโน้ต", "หนังสือ"),
    "clothing": ("clothing", "clothes", "jacket", "coat", "shirt", "hoodie", "sweater",
                 "hat", "cap", "shoes", "scarf", "umbrella", "windbreaker",
                 "เสื้อผ้า", "เสื้อ", "เสื้อกันหนาว", "แจ็คเก็ต", "กางเกง", "หมวก", "รองเท้า",
                 "ผ้าพันคอ", "ถุงเท้า", "เข็มขัด", "ร่ม"),
    "accessories": ("accessories", "accessory", "ring", "necklace", "earring", "earrings",
                    "watch", "glasses", "sunglasses", "bracelet", "jewelry", "smartwatch",
                    "apple watch", "เครื่องประดับ", "แหวน", "สร้อย", "สร้อยคอ", "ต่างหู",
                    "นาฬิกา", "แว่น", "แว่นตา", "กำไล"),
    "other": ("other", "misc", "miscellaneous", "อื่นๆ"),
}

# canonical location -> (zone, aliases)
LOCATIONS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "library": ("academic", ("library", "learning center", "reading room",
                             "ห้องสมุด", "ศูนย์เรียนรู้")),
    "classroom": ("academic", ("classroom", "class", "lecture hall", "lab", "laboratory",
                               "ห้องเรียน", "ห้อง")),
    "canteen": ("dining", ("canteen", "cafeteria", "food court", "dining hall",
                           "โรงอาหาร", "ศูนย์อาหาร", "โต๊ะอาหาร")),
    "shop": ("dining", ("shop", "store", "cooperative", "co-op", "7-11", "kiosk",
                        "สหกรณ์", "ร้านค้า", "ร้าน", "เซเว่น")),
    "gym": ("sports", ("gym", "gymnasium", "fitness center", "sports hall", "โรงยิม")),
    "sports_field": ("sports", ("sports field", "field", "football field", "court",
                                "basketball court", "stadium", "track",
                                "สนามกีฬา", "สนามบอล", "สนามฟุตบอล", "สนามบาส", "ฟุตซอล", "สนาม")),
    "restroom": ("facilities", ("restroom", "toilet", "bathroom", "washroom",
                                "ห้องน้ำ", "ส้วม")),
    "lobby": ("facilities", ("lobby", "hallway", "corridor", "stairs", "elevator",
                             "โถง", "ทางเดิน", "บันได", "ลิฟต์")),
    "admin_office": ("administration", ("admin office", "office", "administration",
                                        "ธุรการ", "สำนักงาน", "ห้องปกครอง", "ฝ่ายปกครอง")),
    "security": ("administration", ("security", "security office", "guard post", "ป้อมยาม")),
    "dormitory": ("residential", ("dormitory", "dorm", "residence hall", "หอพัก", "ที่พัก")),
    "parking": ("grounds", ("parking", "parking lot", "car park",
                            "ลานจอดรถ", "ที่จอดรถ", "จอดรถ")),
}

_CATEGORY_BY_ALIAS: Dict[str, str] = {
    alias: key for key, aliases in CATEGORY_ALIASES.items() for alias in (key,) + aliases
}
_LOCATION_BY_ALIAS: Dict[str, str] = {
    alias: key for key, (_, aliases) in LOCATIONS.items()
    for alias in (key, key.replace("_", " ")) + aliases
}


@dataclass(frozen=True)
class NormalizedItem:
    item_id: str
    item_type: ItemType
    text: str                  # "" when the record has no description
    tokens: FrozenSet[str]
    category: str              # canonical key, pass-through token or UNKNOWN
    location: str              # canonical key, cleaned raw label or UNKNOWN
    zone: Optional[str]
    day: Optional[dt.date]     # None when the date is unknown
    color: str = UNKNOWN
    brand: str = UNKNOWN
    enriched: bool = False


def collapse(value: Optional[str]) -> str:
    """Lower-case and collapse runs of whitespace."""
    if not value:
        return ""
    return " ".join(value.lower().split())


def tokenize(text: str) -> FrozenSet[str]:
    return frozenset(_TOKEN_RE.findall(text))


def canonical_category(raw: Optional[str]) -> str:
    value = collapse(raw)
    if not value:
        return UNKNOWN
    return _CATEGORY_BY_ALIAS.get(value, value.replace(" ", "_"))


def _padded(text: str) -> str:
    return f" {' '.join(_TOKEN_RE.findall(text))} "


def _mentions(alias: str, text: str, padded: str) -> bool:
    # whole words for spaced scripts, substrings for Thai
    if _UNSPACED_RE.search(alias):
        return alias in text
    return f" {alias} " in padded


def detect_category(text: str) -> str:
    """Naive keyword scan of free text. First category (in table order) wins."""
    if not text:
        return UNKNOWN
    padded = _padded(text)
    for key, aliases in CATEGORY_ALIASES.items():
        if key == "other":
            continue
        if any(_mentions(alias, text, padded) for alias in aliases):
            return key
    return UNKNOWN


def _scan_location(value: str) -> Optional[str]:
    """Longest alias mentioned in the label, so "ห้องน้ำ" beats "ห้อง"."""
    padded = _padded(value)
    hits = [(len(alias), alias) for alias in _LOCATION_BY_ALIAS if _mentions(alias, value, padded)]
    if not hits:
        return None
    return _LOCATION_BY_ALIAS[max(hits)[1]]


def canonical_location(raw: Optional[str]) -> Tuple[str, Optional[str]]:
    """Return ``(location_key, zone)`` for a free-text location label.

    Exact alias first, then the longest alias mentioned in the label, then the
    cleaned label itself with no zone.
    """
    value = collapse(raw)
    if not value:
        return UNKNOWN, None
    key = _LOCATION_BY_ALIAS.get(value) or _scan_location(value)
    if key is None:
        return value, None
    return key, LOCATIONS[key][0]


def to_day(value: Union[dt.datetime, dt.date, None]) -> Optional[dt.date]:
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc)
        return value.date()
    return value


def _first(*values: Optional[str]) -> Optional[str]:
    for v in values:
        if v and v.strip():
            return v
    return None


def normalize(record: ItemRecord, extracted: Optional[ExtractedAttributes] = None) -> NormalizedItem:
    """Canonicalize a record, optionally merging AI-extracted attributes.

    Precedence per field:
      category  -> record field, extracted category, keyword detection
      color/brand/location -> record field, extracted value
    Extracted values that are empty are ignored.
    """
    ex = extracted or ExtractedAttributes(target=record.item_type)

    text = collapse(" ".join(filter(None, [record.item_name, record.description])))

    if _first(record.category):
        category = canonical_category(record.category)
    elif _first(ex.category):
        category = canonical_category(ex.category)
    else:
        category = detect_category(text)

    color = collapse(_first(record.color, ex.color)) or UNKNOWN
    brand = collapse(_first(record.brand, ex.brand)) or UNKNOWN
    location, zone = canonical_location(_first(record.location, ex.location))

    tokens = set(tokenize(text))
    for attr in (color, brand):
        if attr != UNKNOWN:
            tokens.update(tokenize(attr))

    return NormalizedItem(
        item_id=record.id,
        item_type=record.item_type,
        text=text,
        tokens=frozenset(tokens),
        category=category,
        location=location,
        zone=zone,
        day=to_day(record.event_date),
        color=color,
        brand=brand,
        enriched=extracted is not None,
    )
