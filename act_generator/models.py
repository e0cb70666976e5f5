"""
Generator data models - templates in, generated hierarchy out.
"""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .variable_engine import value_to_string

PLATFORMS = ("google", "facebook", "reddit")


def generate_id() -> str:
    return uuid.uuid4().hex


def row_id(row: Mapping[str, Any]) -> str:
    """A row's id as a string; synthesized when the row has none."""
    raw = row.get("id")
    if raw is None or isinstance(raw, bool) or raw == "":
        return generate_id()
    return value_to_string(raw)


# ─────────────────────────────────────────────────────────────
# Templates
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Budget:
    type: str                           # daily | lifetime
    amount: float                       # currency units (not micros)
    currency: str = "USD"


@dataclass
class AdTemplate:
    id: str
    headline: str = ""
    description: str = ""
    display_url: Optional[str] = None
    final_url: Optional[str] = None
    call_to_action: Optional[str] = None

    def patterns(self) -> Dict[str, str]:
        """Field name -> pattern for every field the template sets."""
        out = {"headline": self.headline or "", "description": self.description or ""}
        for name in ("display_url", "final_url", "call_to_action"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out


@dataclass
class AdGroupTemplate:
    id: str
    name: Optional[str] = None          # pattern; "Ad Group" when unset
    ad_templates: List[AdTemplate] = field(default_factory=list)
    targeting: Optional[Dict[str, Any]] = None
    bid_strategy: Optional[str] = None
    bid_amount: Optional[float] = None


@dataclass
class CampaignTemplate:
    id: str
    name: str                           # pattern
    platform: str                       # google | facebook | reddit
    ad_group_templates: List[AdGroupTemplate] = field(default_factory=list)
    objective: Optional[str] = None
    budget: Optional[Budget] = None
    targeting: Optional[Dict[str, Any]] = None

    @property
    def ad_groups_per_campaign(self) -> int:
        return len(self.ad_group_templates)

    @property
    def ads_per_campaign(self) -> int:
        return sum(len(ag.ad_templates) for ag in self.ad_group_templates)


# ─────────────────────────────────────────────────────────────
# Generated hierarchy
# ─────────────────────────────────────────────────────────────
@dataclass
class GeneratedAd:
    id: str
    template_id: str
    source_row_id: str
    headline: str
    description: str
    display_url: Optional[str] = None
    final_url: Optional[str] = None
    call_to_action: Optional[str] = None
    variation_index: Optional[int] = None   # set when expanded from [[...]] groups
    warnings: List[str] = field(default_factory=list)

    def fields(self) -> Dict[str, Optional[str]]:
        return {
            "headline": self.headline,
            "description": self.description,
            "display_url": self.display_url,
            "final_url": self.final_url,
            "call_to_action": self.call_to_action,
        }


@dataclass
class GeneratedAdGroup:
    id: str
    template_id: str
    name: str
    ads: List[GeneratedAd] = field(default_factory=list)
    targeting: Optional[Dict[str, Any]] = None
    bid_strategy: Optional[str] = None
    bid_amount: Optional[float] = None


@dataclass
class GeneratedCampaign:
    id: str
    template_id: str
    source_row_id: str
    name: str
    platform: str
    objective: Optional[str] = None
    budget: Optional[Budget] = None
    targeting: Optional[Dict[str, Any]] = None
    ad_groups: List[GeneratedAdGroup] = field(default_factory=list)
    groups: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    @property
    def total_ads(self) -> int:
        return sum(len(ag.ads) for ag in self.ad_groups)

    def content_key(self) -> tuple:
        """Everything except ids; equal keys mean identical campaigns."""
        return (
            self.name,
            tuple(
                (ag.name, tuple(tuple(ad.fields().values()) for ad in ag.ads))
                for ag in self.ad_groups
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationWarning:
    """A generated ad field over its platform limit."""
    campaign_id: str
    field: str
    message: str
    ad_group_id: Optional[str] = None
    ad_id: Optional[str] = None
    limit: Optional[int] = None
    actual: Optional[int] = None
