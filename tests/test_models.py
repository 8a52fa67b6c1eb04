"""Tests for rule model accessors."""
import pytest

from models.crawling_rule import CrawlingRule, FuzzingParameter, TargetElement
from models.custom_value import coerce_custom_mapping, coerce_custom_value
from models.detection_rule import (
    DetectionRule,
    HTTPHeaderField,
    MetaTag,
    PageContentSignature,
    URLMicroSignature,
)
from models.execution_plan import ExecutionPlanItem, PlanCondition
from models.ruleset import RuleGroup, Ruleset


def test_detection_rule_names_are_trimmed():
    rule = DetectionRule(rule_name=" Detect Nginx ", object_name=" Nginx ")
    assert rule.get_rule_name() == "Detect Nginx"
    assert rule.get_object_name() == "Nginx"
    assert rule.get_index_key() == "nginx"


def test_implies_returns_raw_adjacency():
    rule = DetectionRule(rule_name="a", object_name="a", implies=["PHP", "a"])
    implied = rule.get_implies()
    assert implied == ["PHP", "a"]
    implied.append("x")
    assert rule.implies == ["PHP", "a"]


def test_http_header_field_accessors():
    header = HTTPHeaderField(key=" Server ", value=[" nginx ", "openresty "], confidence=0.8)
    assert header.get_key() == "Server"
    assert header.get_value(0) == "nginx"
    assert header.get_value(1) == "openresty"
    assert header.get_value(2) == ""
    assert header.get_value(-1) == ""
    assert header.get_all_values() == ["nginx", "openresty"]
    assert header.get_confidence() == 0.8


def test_detection_rule_header_fields_are_normalized():
    rule = DetectionRule(
        rule_name="r",
        object_name="o",
        http_header_fields=[HTTPHeaderField(key=" * ", value=[" x "], confidence=0.2)],
    )
    assert rule.get_all_http_header_fields() == [HTTPHeaderField(key="*", value=["x"], confidence=0.2)]
    assert rule.http_header_fields[0].key == " * "


def test_meta_tag_accessors():
    tag = MetaTag(name=" generator ", content=" WordPress 6.4 ")
    assert tag.get_name() == "generator"
    assert tag.get_content() == "WordPress 6.4"
    assert tag.confidence == 0.5


def test_page_content_and_url_signatures():
    rule = DetectionRule(
        rule_name="r",
        object_name="o",
        page_content_patterns=[PageContentSignature(key=" div ", signature=[" a ", "b "], text=[" keep "])],
        url_micro_signatures=[URLMicroSignature(signature=" /wp-admin ")],
    )
    pattern = rule.get_all_page_content_patterns()[0]
    assert (pattern.key, pattern.signature, pattern.text) == ("div", ["a", "b"], [" keep "])
    assert rule.get_all_url_micro_signatures()[0].signature == "/wp-admin"


def test_crawling_rule_accessors():
    rule = CrawlingRule(
        rule_name=" Crawl Social Media ",
        request_type=" post ",
        target_elements=[TargetElement(selector_type=" CSS ", selector=" #submit ")],
        fuzzing_parameters=[
            FuzzingParameter(parameter_name=" Email ", fuzzing_type=" PATTERN_BASED ", values=[" test1 ", "test2"], pattern=" .*@example.com "),
        ],
    )
    assert rule.get_rule_name() == "Crawl Social Media"
    assert rule.get_request_type() == "POST"
    element = rule.get_target_elements()[0]
    assert element.get_selector_type() == "css"
    assert element.get_selector() == "#submit"
    param = rule.get_fuzzing_parameters()[0]
    assert param.get_parameter_name() == "Email"
    assert param.get_fuzzing_type() == "pattern_based"
    assert param.get_values() == ["test1", "test2"]
    assert param.get_pattern() == ".*@example.com"


@pytest.mark.parametrize("selector,expected", [(" #submit ", "#submit"), ("#submit", "#submit"), (" ", ""), (" @submit ", "@submit")])
def test_target_element_selector(selector, expected):
    assert TargetElement(selector_type="css", selector=selector).get_selector() == expected


def test_ruleset_groups():
    enabled = RuleGroup(
        group_name=" Web Servers ",
        detection_rules=[DetectionRule(rule_name="a", object_name="nginx")],
        crawling_rules=[CrawlingRule(rule_name="c")],
    )
    disabled = RuleGroup(
        group_name="Old",
        is_enabled=False,
        detection_rules=[DetectionRule(rule_name="b", object_name="iis")],
    )
    ruleset = Ruleset(name=" Default ", rule_groups=[enabled, disabled])
    assert ruleset.get_name() == "Default"
    assert ruleset.get_enabled_rule_groups() == [enabled]
    assert [r.rule_name for r in ruleset.get_all_detection_rules()] == ["a"]
    assert [r.rule_name for r in ruleset.get_all_crawling_rules()] == ["c"]
    assert ruleset.get_rule_group("web servers") is enabled
    assert ruleset.get_rule_group("missing") is None


def test_execution_plan_item_accessors():
    item = ExecutionPlanItem(label=" Login pages ", conditions=PlanCondition(url_patterns=[" */login* "]))
    assert item.get_label() == "Login pages"
    assert item.get_url_patterns() == ["*/login*"]
    assert item.additional_conditions == {}


def test_coerce_custom_value():
    value = {"a": [1, 2.5, True, None, ("x", "y")], "b": {"c": "d"}}
    assert coerce_custom_value(value) == {"a": [1, 2.5, True, None, ["x", "y"]], "b": {"c": "d"}}


def test_coerce_custom_value_rejects_other_types():
    with pytest.raises(TypeError, match=r"value\.a\[0\]"):
        coerce_custom_value({"a": [{1, 2}]})
    with pytest.raises(TypeError):
        coerce_custom_value({1: "x"})


def test_coerce_custom_mapping():
    assert coerce_custom_mapping(None) == {}
    with pytest.raises(TypeError):
        coerce_custom_mapping(["not", "a", "mapping"])
