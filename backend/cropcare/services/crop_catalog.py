"""Crop-family lookup used by the heuristic plan builder."""
from __future__ import annotations

import re
from enum import Enum
from typing import Optional


class CropFamily(str, Enum):
    RICE = "rice"
    WHEAT = "wheat"
    MAIZE = "maize"
    POTATO = "potato"
    TOMATO = "tomato"
    ONION = "onion"
    COTTON = "cotton"
    SUGARCANE = "sugarcane"
    GENERIC = "generic"


MATURITY_DAYS: dict[CropFamily, int] = {
    CropFamily.RICE: 120,
    CropFamily.WHEAT: 120,
    CropFamily.MAIZE: 100,
    CropFamily.POTATO: 95,
    CropFamily.TOMATO: 95,
    CropFamily.ONION: 125,
    CropFamily.COTTON: 160,
    CropFamily.SUGARCANE: 330,
    CropFamily.GENERIC: 110,
}

# Order matters only for equal-length ties.
CROP_ALIASES: tuple[tuple[str, CropFamily], ...] = (
    ("rice", CropFamily.RICE),
    ("paddy", CropFamily.RICE),
    ("basmati", CropFamily.RICE),
    ("wheat", CropFamily.WHEAT),
    ("maize", CropFamily.MAIZE),
    ("corn", CropFamily.MAIZE),
    ("sweet corn", CropFamily.MAIZE),
    ("potato", CropFamily.POTATO),
    ("sweet potato", CropFamily.GENERIC),
    ("tomato", CropFamily.TOMATO),
    ("onion", CropFamily.ONION),
    ("cotton", CropFamily.COTTON),
    ("sugarcane", CropFamily.SUGARCANE),
    ("sugar cane", CropFamily.SUGARCANE),
)

_WORD_RE = re.compile(r"[a-z0-9]+")


def normalize_crop_name(value: Optional[str]) -> str:
    return " ".join(_WORD_RE.findall((value or "").lower()))


def _contains_phrase(haystack: str, phrase: str) -> bool:
    return f" {phrase} " in f" {haystack} "


def match_crop_family(value: Optional[str]) -> CropFamily:
    """
    Resolve a free-text crop name to a family.

    Exact alias match first; otherwise the longest alias found as a whole-word
    phrase. "sweet potato" therefore never lands on POTATO, and "peppercorn"
    never lands on MAIZE.
    """
    name = normalize_crop_name(value)
    if not name:
        return CropFamily.GENERIC

    for alias, family in CROP_ALIASES:
        if alias == name:
            return family

    best: Optional[tuple[str, CropFamily]] = None
    for alias, family in CROP_ALIASES:
        if not _contains_phrase(name, alias):
            continue
        if best is None or len(alias) > len(best[0]):
            best = (alias, family)
    return best[1] if best else CropFamily.GENERIC


def resolve_crop_family(crop_name: Optional[str], crop_type: Optional[str] = None) -> CropFamily:
    family = match_crop_family(crop_name)
    if family is CropFamily.GENERIC and crop_type:
        family = match_crop_family(crop_type)
    return family


def maturity_days_for(family: CropFamily) -> int:
    return MATURITY_DAYS[family]
