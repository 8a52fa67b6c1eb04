from dataclasses import dataclass, field
from typing import List, Optional
from models.detection_rule import DetectionRule
from models.crawling_rule import CrawlingRule


@dataclass(frozen=True)
class RuleGroup:
    group_name: str
    is_enabled: bool = True
    detection_rules: List[DetectionRule] = field(default_factory=list)
    crawling_rules: List[CrawlingRule] = field(default_factory=list)

    def get_group_name(self) -> str:
        return self.group_name.strip()


@dataclass(frozen=True)
class Ruleset:
    """A named collection of rule groups, usually one per rules file."""
    name: str
    rule_groups: List[RuleGroup] = field(default_factory=list)

    def get_name(self) -> str:
        return self.name.strip()

    def get_enabled_rule_groups(self) -> List[RuleGroup]:
        return [g for g in self.rule_groups if g.is_enabled]

    def get_rule_group(self, name: str) -> Optional[RuleGroup]:
        """Look up a group by name, ignoring case and surrounding whitespace."""
        wanted = name.strip().lower()
        for group in self.rule_groups:
            if group.get_group_name().lower() == wanted:
                return group
        return None

    def get_all_detection_rules(self) -> List[DetectionRule]:
        """Detection rules of all enabled groups, in group then rule order."""
        return [r for g in self.get_enabled_rule_groups() for r in g.detection_rules]

    def get_all_crawling_rules(self) -> List[CrawlingRule]:
        return [r for g in self.get_enabled_rule_groups() for r in g.crawling_rules]
