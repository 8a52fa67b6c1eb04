from dataclasses import dataclass, field
from typing import Dict, List
from models.custom_value import CustomValue


@dataclass(frozen=True)
class PlanCondition:
    url_patterns: List[str] = field(default_factory=list) # Matched by the crawler against the current URL


@dataclass(frozen=True)
class ExecutionPlanItem:
    """Binds a URL condition to the rulesets, rule groups and rules to apply."""
    label: str
    conditions: PlanCondition = field(default_factory=PlanCondition)
    rulesets: List[str] = field(default_factory=list)
    rule_groups: List[str] = field(default_factory=list)
    rules: List[str] = field(default_factory=list)
    additional_conditions: Dict[str, CustomValue] = field(default_factory=dict)

    def get_label(self) -> str:
        return self.label.strip()

    def get_url_patterns(self) -> List[str]:
        return [p.strip() for p in self.conditions.url_patterns]
