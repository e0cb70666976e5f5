from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .grouper import GroupingConfig
from .models import PLATFORMS, AdGroupTemplate, AdTemplate, Budget, CampaignTemplate
from .rules import (
    OPERATORS,
    AddTagAction,
    AddToGroupAction,
    Condition,
    ConditionGroup,
    ModifyFieldAction,
    RemoveFromGroupAction,
    Rule,
    SetFieldAction,
    SetTargetingAction,
    SkipAction,
)
from .variations import VariationConfig


# ─────────────────────────────────────────────────────────────
# Template
# ─────────────────────────────────────────────────────────────
class BudgetModel(BaseModel):
    type: Literal["daily", "lifetime"] = "daily"
    amount: float
    currency: str = "USD"

    @field_validator("amount")
    @classmethod
    def amount_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("budget.amount must be >= 0")
        return v

    @field_validator("currency")
    @classmethod
    def currency_upper(cls, v: str) -> str:
        return v.strip().upper()


class AdModel(BaseModel):
    id: str
    headline: str = ""
    description: str = ""
    display_url: Optional[str] = None
    final_url: Optional[str] = None
    call_to_action: Optional[str] = None

    def to_domain(self) -> AdTemplate:
        return AdTemplate(**self.model_dump())


class AdGroupModel(BaseModel):
    id: str
    name: Optional[str] = None
    targeting: Optional[Dict[str, Any]] = None
    bid_strategy: Optional[str] = None
    bid_amount: Optional[float] = None
    ads: List[AdModel] = Field(default_factory=list)

    def to_domain(self) -> AdGroupTemplate:
        return AdGroupTemplate(
            id=self.id,
            name=self.name,
            ad_templates=[a.to_domain() for a in self.ads],
            targeting=self.targeting,
            bid_strategy=self.bid_strategy,
            bid_amount=self.bid_amount,
        )


class TemplateModel(BaseModel):
    id: str
    name: str
    platform: str
    objective: Optional[str] = None
    budget: Optional[BudgetModel] = None
    targeting: Optional[Dict[str, Any]] = None
    ad_groups: List[AdGroupModel] = Field(default_factory=list)

    @field_validator("platform")
    @classmethod
    def platform_known(cls, v: str) -> str:
        v2 = v.strip().lower()
        if v2 not in PLATFORMS:
            raise ValueError(f"template.platform must be one of {', '.join(PLATFORMS)}")
        return v2

    def to_domain(self) -> CampaignTemplate:
        budget = None
        if self.budget is not None:
            budget = Budget(type=self.budget.type, amount=self.budget.amount, currency=self.budget.currency)
        return CampaignTemplate(
            id=self.id,
            name=self.name,
            platform=self.platform,
            ad_group_templates=[ag.to_domain() for ag in self.ad_groups],
            objective=self.objective,
            budget=budget,
            targeting=self.targeting,
        )


# ─────────────────────────────────────────────────────────────
# Rules
# ─────────────────────────────────────────────────────────────
class ConditionModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    field: str
    operator: str
    value: Any = None
    id: Optional[str] = None

    @field_validator("operator")
    @classmethod
    def operator_known(cls, v: str) -> str:
        if v not in OPERATORS:
            raise ValueError(f"unknown operator '{v}'")
        return v

    def to_domain(self) -> Condition:
        return Condition(field=self.field, operator=self.operator, value=self.value, id=self.id)


class ConditionGroupModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    logic: str = "AND"
    conditions: List[Union[ConditionGroupModel, ConditionModel]]
    id: Optional[str] = None

    @field_validator("logic")
    @classmethod
    def logic_and_or(cls, v: str) -> str:
        v2 = v.strip().upper()
        if v2 not in ("AND", "OR"):
            raise ValueError("logic must be AND or OR")
        return v2

    def to_domain(self) -> ConditionGroup:
        return ConditionGroup(
            logic=self.logic,
            conditions=[c.to_domain() for c in self.conditions],
            id=self.id,
        )


ConditionGroupModel.model_rebuild()


class SkipActionModel(BaseModel):
    type: Literal["skip"]

    def to_domain(self) -> SkipAction:
        return SkipAction()


class SetFieldActionModel(BaseModel):
    type: Literal["set_field"]
    field: str
    value: Any = None

    def to_domain(self) -> SetFieldAction:
        return SetFieldAction(field=self.field, value=self.value)


class ModifyFieldActionModel(BaseModel):
    type: Literal["modify_field"]
    field: str
    operation: Literal["append", "prepend", "replace"]
    value: str = ""
    pattern: Optional[str] = None

    def to_domain(self) -> ModifyFieldAction:
        return ModifyFieldAction(
            field=self.field, operation=self.operation, value=self.value, pattern=self.pattern
        )


class AddToGroupActionModel(BaseModel):
    type: Literal["add_to_group"]
    group_name: str

    def to_domain(self) -> AddToGroupAction:
        return AddToGroupAction(group_name=self.group_name)


class RemoveFromGroupActionModel(BaseModel):
    type: Literal["remove_from_group"]
    group_name: str

    def to_domain(self) -> RemoveFromGroupAction:
        return RemoveFromGroupAction(group_name=self.group_name)


class AddTagActionModel(BaseModel):
    type: Literal["add_tag"]
    tag: str

    def to_domain(self) -> AddTagAction:
        return AddTagAction(tag=self.tag)


class SetTargetingActionModel(BaseModel):
    type: Literal["set_targeting"]
    targeting: Dict[str, Any]

    def to_domain(self) -> SetTargetingAction:
        return SetTargetingAction(targeting=self.targeting)


ActionModel = Annotated[
    Union[
        SkipActionModel,
        SetFieldActionModel,
        ModifyFieldActionModel,
        AddToGroupActionModel,
        RemoveFromGroupActionModel,
        AddTagActionModel,
        SetTargetingActionModel,
    ],
    Field(discriminator="type"),
]


class RuleModel(BaseModel):
    id: str
    name: str = ""
    enabled: bool = True
    priority: int = 0
    conditions: ConditionGroupModel = Field(
        default_factory=lambda: ConditionGroupModel(conditions=[])
    )
    actions: List[ActionModel] = Field(default_factory=list)

    @field_validator("priority", mode="before")
    @classmethod
    def priority_integer(cls, v: Any) -> Any:
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValueError("priority must be an integer")
        return v

    def to_domain(self) -> Rule:
        return Rule(
            id=self.id,
            name=self.name or self.id,
            condition_group=self.conditions.to_domain(),
            actions=[a.to_domain() for a in self.actions],
            enabled=self.enabled,
            priority=self.priority,
        )


# ─────────────────────────────────────────────────────────────
# Grouping / options / job
# ─────────────────────────────────────────────────────────────
class GroupingModel(BaseModel):
    campaign_name_pattern: str
    ad_group_name_pattern: str
    ad_mapping: Dict[str, str]

    @field_validator("ad_mapping")
    @classmethod
    def ad_mapping_required_fields(cls, v: Dict[str, str]) -> Dict[str, str]:
        missing = [k for k in ("headline", "description") if k not in v]
        if missing:
            raise ValueError(f"ad_mapping missing: {', '.join(missing)}")
        return v

    def to_domain(self) -> GroupingConfig:
        return GroupingConfig(
            campaign_name_pattern=self.campaign_name_pattern,
            ad_group_name_pattern=self.ad_group_name_pattern,
            ad_mapping=dict(self.ad_mapping),
        )


class OptionsModel(BaseModel):
    validate_platform_limits: Optional[bool] = None    # None -> settings default
    deduplicate_campaigns: bool = False
    deduplicate_ads: bool = False
    inline_variations: bool = False
    max_variations: Optional[int] = None
    deduplicate_by: Optional[List[str]] = None

    @field_validator("max_variations")
    @classmethod
    def max_variations_non_negative(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("max_variations must be >= 0")
        return v

    def variation_config(self) -> VariationConfig:
        return VariationConfig(max_variations=self.max_variations, deduplicate_by=self.deduplicate_by)


class JobConfig(BaseModel):
    template: TemplateModel
    rules: List[RuleModel] = Field(default_factory=list)
    grouping: Optional[GroupingModel] = None
    options: OptionsModel = OptionsModel()

    @field_validator("rules")
    @classmethod
    def rule_ids_unique(cls, v: List[RuleModel]) -> List[RuleModel]:
        seen = set()
        for rule in v:
            if rule.id in seen:
                raise ValueError(f"duplicate rule id '{rule.id}'")
            seen.add(rule.id)
        return v

    def domain_rules(self) -> List[Rule]:
        return [r.to_domain() for r in self.rules]


def parse_job_config(data: dict) -> JobConfig:
    # Raises ValidationError if invalid
    return JobConfig.model_validate(data)
