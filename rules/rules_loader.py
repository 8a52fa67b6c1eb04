"""
Loads rulesets and execution plans from YAML (or JSON) documents.

Documents are decoded with PyYAML and converted into the rule models. Only
the structure needed to build the models is checked here; schema validation
of rule documents happens elsewhere.
"""
import os
import logging
import yaml
from typing import Any, Dict, List, Optional
from models.custom_value import coerce_custom_mapping
from models.crawling_rule import CrawlingRule, FuzzingParameter, TargetElement
from models.detection_rule import (
    DetectionRule,
    HTTPHeaderField,
    MetaTag,
    PageContentSignature,
    PluginCall,
    SSLSignature,
    URLMicroSignature,
)
from models.execution_plan import ExecutionPlanItem, PlanCondition
from models.ruleset import RuleGroup, Ruleset
from fetch.http_client import fetch_text

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.5
RULE_FILE_EXTENSIONS = (".yaml", ".yml")


def _as_list(value: Any, where: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{where}: expected a list, got {type(value).__name__}")
    return value


def _as_str_list(value: Any, where: str) -> List[str]:
    # A single string is accepted where a list of strings is expected
    if isinstance(value, str):
        return [value]
    return [str(v) for v in _as_list(value, where)]


def _as_mapping(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


def _confidence(item: Dict[str, Any], where: str) -> float:
    value = item.get("confidence", DEFAULT_CONFIDENCE)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{where}: invalid confidence {value!r}") from None


def _parse_plugin_call(item: Any, where: str) -> PluginCall:
    item = _as_mapping(item, where)
    try:
        args = coerce_custom_mapping(item.get("plugin_args"), f"{where}.plugin_args")
    except TypeError as e:
        raise ValueError(str(e)) from None
    return PluginCall(plugin_name=str(item.get("plugin_name", "")), plugin_args=args)


def parse_detection_rule(data: Any, where: str = "detection_rule") -> Optional[DetectionRule]:
    """Build a DetectionRule, or return None when the rule has no name or object."""
    data = _as_mapping(data, where)
    if not all(data.get(k) for k in ("rule_name", "object_name")):
        logger.warning(f"Skipping invalid detection rule at {where}: missing rule_name or object_name")
        return None

    headers = [
        HTTPHeaderField(
            key=str(h.get("key", "")),
            value=_as_str_list(h.get("value"), f"{where}.http_header_fields[{i}].value"),
            confidence=_confidence(h, f"{where}.http_header_fields[{i}]"),
        )
        for i, h in enumerate(_as_mapping(x, f"{where}.http_header_fields") for x in _as_list(data.get("http_header_fields"), where))
    ]
    page_patterns = [
        PageContentSignature(
            key=str(p.get("key", "")),
            signature=_as_str_list(p.get("signature"), f"{where}.page_content_patterns[{i}].signature"),
            text=_as_str_list(p.get("text"), f"{where}.page_content_patterns[{i}].text"),
            confidence=_confidence(p, f"{where}.page_content_patterns[{i}]"),
        )
        for i, p in enumerate(_as_mapping(x, f"{where}.page_content_patterns") for x in _as_list(data.get("page_content_patterns"), where))
    ]
    url_signatures = [
        URLMicroSignature(
            signature=str(s.get("signature", "")),
            confidence=_confidence(s, f"{where}.url_micro_signatures[{i}]"),
        )
        for i, s in enumerate(_as_mapping(x, f"{where}.url_micro_signatures") for x in _as_list(data.get("url_micro_signatures"), where))
    ]
    meta_tags = [
        MetaTag(
            name=str(t.get("name", "")),
            content=str(t.get("content", "")),
            confidence=_confidence(t, f"{where}.meta_tags[{i}]"),
        )
        for i, t in enumerate(_as_mapping(x, f"{where}.meta_tags") for x in _as_list(data.get("meta_tags"), where))
    ]
    ssl_signatures = [
        SSLSignature(
            key=str(s.get("key", "")),
            value=_as_str_list(s.get("value"), f"{where}.ssl_signatures[{i}].value"),
            confidence=_confidence(s, f"{where}.ssl_signatures[{i}]"),
        )
        for i, s in enumerate(_as_mapping(x, f"{where}.ssl_signatures") for x in _as_list(data.get("ssl_signatures"), where))
    ]
    plugin_calls = [
        _parse_plugin_call(c, f"{where}.plugin_calls[{i}]")
        for i, c in enumerate(_as_list(data.get("plugin_calls"), where))
    ]

    return DetectionRule(
        rule_name=str(data["rule_name"]),
        object_name=str(data["object_name"]),
        http_header_fields=headers,
        page_content_patterns=page_patterns,
        url_micro_signatures=url_signatures,
        meta_tags=meta_tags,
        ssl_signatures=ssl_signatures,
        implies=_as_str_list(data.get("implies"), f"{where}.implies"),
        plugin_calls=plugin_calls,
    )


def parse_crawling_rule(data: Any, where: str = "crawling_rule") -> CrawlingRule:
    data = _as_mapping(data, where)
    targets = [
        TargetElement(
            selector_type=str(t.get("selector_type", "")),
            selector=str(t.get("selector", "")),
        )
        for t in (_as_mapping(x, f"{where}.target_elements") for x in _as_list(data.get("target_elements"), where))
    ]
    fuzzing = [
        FuzzingParameter(
            parameter_name=str(f.get("parameter_name", "")),
            fuzzing_type=str(f.get("fuzzing_type", "fixed_list")),
            values=_as_str_list(f.get("values"), f"{where}.fuzzing_parameters.values"),
            pattern=str(f.get("pattern") or ""),
        )
        for f in (_as_mapping(x, f"{where}.fuzzing_parameters") for x in _as_list(data.get("fuzzing_parameters"), where))
    ]
    return CrawlingRule(
        rule_name=str(data.get("rule_name", "")),
        request_type=str(data.get("request_type") or "GET"),
        target_elements=targets,
        fuzzing_parameters=fuzzing,
    )


def parse_ruleset(document: Any, source: str = "<document>") -> Ruleset:
    """
    Convert one decoded ruleset document into a Ruleset.

    Args:
        document: Mapping with 'ruleset_name' and 'rule_groups'
        source: Where the document came from, used in error messages

    Raises:
        ValueError: the document does not have the expected structure
    """
    document = _as_mapping(document, source)
    groups: List[RuleGroup] = []
    for gi, group in enumerate(_as_list(document.get("rule_groups"), f"{source}.rule_groups")):
        where = f"{source}.rule_groups[{gi}]"
        group = _as_mapping(group, where)
        detection_rules = []
        for ri, rule_data in enumerate(_as_list(group.get("detection_rules"), f"{where}.detection_rules")):
            rule = parse_detection_rule(rule_data, f"{where}.detection_rules[{ri}]")
            if rule is not None:
                detection_rules.append(rule)
        crawling_rules = [
            parse_crawling_rule(r, f"{where}.crawling_rules[{ri}]")
            for ri, r in enumerate(_as_list(group.get("crawling_rules"), f"{where}.crawling_rules"))
        ]
        groups.append(
            RuleGroup(
                group_name=str(group.get("group_name", "")),
                is_enabled=bool(group.get("is_enabled", True)),
                detection_rules=detection_rules,
                crawling_rules=crawling_rules,
            )
        )
    return Ruleset(name=str(document.get("ruleset_name", "")), rule_groups=groups)


def _parse_rulesets_text(text: str, source: str) -> List[Ruleset]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"{source}: invalid YAML: {e}") from e
    if not data:
        logger.debug(f"Skipping empty rules document {source}")
        return []
    # A file may hold a single ruleset or a list of them
    documents = data if isinstance(data, list) else [data]
    return [parse_ruleset(doc, f"{source}[{i}]") for i, doc in enumerate(documents)]


def load_rulesets(rules_dir: str = "rules") -> List[Ruleset]:
    """
    Loads rulesets from all .yaml/.yml files in a directory, in file name order.
    """
    rulesets: List[Ruleset] = []
    for filename in sorted(os.listdir(rules_dir)):
        if not filename.endswith(RULE_FILE_EXTENSIONS):
            continue
        filepath = os.path.join(rules_dir, filename)
        with open(filepath, "r") as f:
            rulesets.extend(_parse_rulesets_text(f.read(), filename))
    logger.info(f"Loaded {len(rulesets)} rulesets from {rules_dir}")
    return rulesets


def load_detection_rules(rules_dir: str = "rules") -> List[DetectionRule]:
    """Detection rules of every enabled rule group under rules_dir, in load order."""
    return [rule for ruleset in load_rulesets(rules_dir) for rule in ruleset.get_all_detection_rules()]


async def fetch_rulesets(url: str, timeout: Optional[float] = None, transport=None) -> List[Ruleset]:
    """Download and parse rulesets published by a web server."""
    text = await fetch_text(url, timeout=timeout, transport=transport)
    rulesets = _parse_rulesets_text(text, url)
    logger.info(f"Fetched {len(rulesets)} rulesets from {url}")
    return rulesets


def parse_execution_plan(data: Any, source: str = "<document>") -> List[ExecutionPlanItem]:
    """Accepts a list of plan items or a mapping with an 'execution_plan' list."""
    if isinstance(data, dict):
        data = data.get("execution_plan")
    items: List[ExecutionPlanItem] = []
    for i, item in enumerate(_as_list(data, source)):
        where = f"{source}[{i}]"
        item = _as_mapping(item, where)
        conditions = item.get("conditions") or {}
        try:
            extra = coerce_custom_mapping(item.get("additional_conditions"), f"{where}.additional_conditions")
        except TypeError as e:
            raise ValueError(str(e)) from None
        items.append(
            ExecutionPlanItem(
                label=str(item.get("label", "")),
                conditions=PlanCondition(
                    url_patterns=_as_str_list(_as_mapping(conditions, f"{where}.conditions").get("url_patterns"), f"{where}.conditions.url_patterns")
                ),
                rulesets=_as_str_list(item.get("rulesets"), f"{where}.rulesets"),
                rule_groups=_as_str_list(item.get("rule_groups"), f"{where}.rule_groups"),
                rules=_as_str_list(item.get("rules"), f"{where}.rules"),
                additional_conditions=extra,
            )
        )
    return items


def load_execution_plan(path: str) -> List[ExecutionPlanItem]:
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if not data:
        return []
    return parse_execution_plan(data, os.path.basename(path))
