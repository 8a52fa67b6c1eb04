from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class TargetElement:
    """A page element the crawler interacts with."""
    selector_type: str # e.g. 'css', 'xpath', 'id'
    selector: str

    def get_selector_type(self) -> str:
        return self.selector_type.strip().lower()

    def get_selector(self) -> str:
        return self.selector.strip()


@dataclass(frozen=True)
class FuzzingParameter:
    """A request parameter to fuzz. Values may be live expressions such as random(1,100)."""
    parameter_name: str
    fuzzing_type: str = "fixed_list" # 'fixed_list' or 'pattern_based'
    values: List[str] = field(default_factory=list)
    pattern: str = ""

    def get_parameter_name(self) -> str:
        return self.parameter_name.strip()

    def get_fuzzing_type(self) -> str:
        return self.fuzzing_type.strip().lower()

    def get_values(self) -> List[str]:
        return [v.strip() for v in self.values]

    def get_pattern(self) -> str:
        return self.pattern.strip()


@dataclass(frozen=True)
class CrawlingRule:
    rule_name: str
    request_type: str = "GET"
    target_elements: List[TargetElement] = field(default_factory=list)
    fuzzing_parameters: List[FuzzingParameter] = field(default_factory=list)

    def get_rule_name(self) -> str:
        return self.rule_name.strip()

    def get_request_type(self) -> str:
        return self.request_type.strip().upper()

    def get_target_elements(self) -> List[TargetElement]:
        return list(self.target_elements)

    def get_fuzzing_parameters(self) -> List[FuzzingParameter]:
        return list(self.fuzzing_parameters)
