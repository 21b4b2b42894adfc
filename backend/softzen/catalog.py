# backend/softzen/catalog.py
"""
Static posture catalog, grouped by therapy type.

The dataset lives in ``data/postures.json`` and is read once on first use.
Each posture record carries ``id``, ``name``, ``sanskrit``, ``instructions``,
``benefits``, ``modifications``, ``videoUrl``, ``image`` and ``durationHint``
(minutes).
"""
from __future__ import annotations
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

CATALOG_PATH = Path(__file__).resolve().parent / "data" / "postures.json"


@lru_cache(maxsize=1)
def load_catalog() -> Dict[str, List[Dict[str, Any]]]:
    with CATALOG_PATH.open(encoding="utf-8") as fh:
        return json.load(fh)


def therapy_type_keys() -> List[str]:
    return list(load_catalog().keys())


def is_therapy_type(key: Any) -> bool:
    return isinstance(key, str) and key in load_catalog()


def display_name(key: str) -> str:
    # "back_pain" -> "Back Pain"
    return key.replace("_", " ").title()


def postures_for(therapy_type: str) -> List[Dict[str, Any]]:
    return list(load_catalog().get(therapy_type, []))


def find_posture(therapy_type: str, posture_id: Any) -> Optional[Dict[str, Any]]:
    for posture in load_catalog().get(therapy_type, []):
        if str(posture["id"]) == str(posture_id):
            return posture
    return None


def therapy_types_payload() -> List[Dict[str, Any]]:
    """Shape served by ``GET /api/therapy-types``."""
    return [
        {"id": key, "name": display_name(key), "postures": postures}
        for key, postures in load_catalog().items()
    ]
