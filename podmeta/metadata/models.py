"""Marketplace constraint tables and metadata result types."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Marketplace(str, Enum):
    SPREADSHIRT = "Spreadshirt"
    TEEPUBLIC = "TeePublic"
    ZAZZLE = "Zazzle"


@dataclass(frozen=True)
class MarketplaceRules:
    title_max: int
    description_max: int
    tag_floor: int | None = None    # pad up to this many tags
    tag_ceiling: int | None = None  # truncate down to this many tags
    requires_main_tag: bool = False


MARKETPLACE_RULES: dict[Marketplace, MarketplaceRules] = {
    Marketplace.SPREADSHIRT: MarketplaceRules(
        title_max=50, description_max=200, tag_floor=25, tag_ceiling=25,
    ),
    Marketplace.TEEPUBLIC: MarketplaceRules(
        title_max=100, description_max=1000, tag_floor=25, tag_ceiling=25,
        requires_main_tag=True,
    ),
    Marketplace.ZAZZLE: MarketplaceRules(
        title_max=100, description_max=1000, tag_ceiling=10,
    ),
}


def get_rules(marketplace: Marketplace) -> MarketplaceRules:
    return MARKETPLACE_RULES[marketplace]


# Raw provider output: parsed JSON content, not schema-guaranteed.
ApiResponse = dict[str, Any]


@dataclass(frozen=True)
class NormalizedMetadata:
    """Marketplace-compliant metadata for one image. Immutable once built."""
    title: str
    description: str
    tags: tuple[str, ...]
    main_tag: str | None = None

    def to_dict(self) -> dict:
        """Wire shape, matching the provider response keys."""
        data = {
            "title": self.title,
            "description": self.description,
            "tags": list(self.tags),
        }
        if self.main_tag is not None:
            data["mainTag"] = self.main_tag
        return data
