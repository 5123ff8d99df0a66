from __future__ import annotations

import re

from .types import CatalogItem

ITEM_ID_RE = re.compile(r"^[a-z0-9_]{1,50}$")

CATALOG: dict[str, tuple[CatalogItem, ...]] = {
    "background": (
        CatalogItem("bg_flames", "Eternal Flames", 0, "background"),
        CatalogItem("bg_blockchain", "Blockchain Grid", 1, "background"),
        CatalogItem("bg_cosmos", "Cosmic Void", 3, "background"),
        CatalogItem("bg_phoenix", "Phoenix Rising", 5, "background"),
        CatalogItem("bg_inferno", "Inferno Core", 7, "background"),
        CatalogItem("bg_transcend", "Transcendence", 9, "background"),
    ),
    "aura": (
        CatalogItem("aura_ember", "Ember Glow", 1, "aura"),
        CatalogItem("aura_spark", "Electric Spark", 2, "aura"),
        CatalogItem("aura_flame", "Dancing Flames", 4, "aura"),
        CatalogItem("aura_inferno", "Inferno Rage", 6, "aura"),
        CatalogItem("aura_divine", "Divine Light", 8, "aura"),
    ),
    "skin": (
        CatalogItem("skin_default", "Fire Dog", 0, "skin", default=True),
        CatalogItem("skin_golden", "Golden Dog", 3, "skin"),
        CatalogItem("skin_cyber", "Cyber Dog", 5, "skin"),
        CatalogItem("skin_ghost", "Ghost Dog", 7, "skin"),
        CatalogItem("skin_cosmic", "Cosmic Dog", 9, "skin"),
    ),
    "outfit": (
        CatalogItem("outfit_hoodie", "Burn Hoodie", 1, "outfit"),
        CatalogItem("outfit_suit", "Degen Suit", 3, "outfit"),
        CatalogItem("outfit_armor", "Diamond Armor", 5, "outfit"),
        CatalogItem("outfit_robe", "Cosmic Robe", 7, "outfit"),
        CatalogItem("outfit_eternal", "Eternal Vestments", 9, "outfit"),
    ),
    "eyes": (
        CatalogItem("eyes_laser", "Laser Eyes", 2, "eyes"),
        CatalogItem("eyes_diamond", "Diamond Eyes", 4, "eyes"),
        CatalogItem("eyes_fire", "Fire Eyes", 6, "eyes"),
        CatalogItem("eyes_void", "Void Eyes", 8, "eyes"),
    ),
    "head": (
        CatalogItem("head_cap", "ASDF Cap", 0, "head"),
        CatalogItem("head_crown", "Burn Crown", 3, "head"),
        CatalogItem("head_halo", "Fire Halo", 5, "head"),
        CatalogItem("head_horns", "Demon Horns", 7, "head"),
        CatalogItem("head_nimbus", "Divine Nimbus", 9, "head"),
    ),
    "held": (
        CatalogItem("held_torch", "Burning Torch", 1, "held"),
        CatalogItem("held_scepter", "Burn Scepter", 4, "held"),
        CatalogItem("held_orb", "Inferno Orb", 6, "held"),
        CatalogItem("held_staff", "Cosmic Staff", 8, "held"),
    ),
}

_ITEMS_BY_ID = {item.id: item for items in CATALOG.values() for item in items}


def all_items() -> list[CatalogItem]:
    return [item for items in CATALOG.values() for item in items]


def get_item(item_id: str) -> CatalogItem | None:
    if not isinstance(item_id, str) or not ITEM_ID_RE.match(item_id):
        return None
    return _ITEMS_BY_ID.get(item_id)
