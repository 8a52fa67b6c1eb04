from typing import List

import pytest

from core.signature_index import (
    DetectionSignatureIndex,
    get_all_http_header_fields_map,
    get_all_meta_tags_map,
    get_all_page_content_patterns_map,
    get_all_plugin_calls_map,
    get_all_ssl_signatures_map,
    get_all_url_micro_signatures_map,
    get_http_header_fields_map_by_key,
)
from models.detection_rule import (
    DetectionRule,
    HTTPHeaderField,
    MetaTag,
    PageContentSignature,
    PluginCall,
    SSLSignature,
    URLMicroSignature,
)


@pytest.fixture
def rules() -> List[DetectionRule]:
    return [
        DetectionRule(
            rule_name="Nginx headers",
            object_name="Server",
            http_header_fields=[
                HTTPHeaderField(key=" server ", value=[" nginx "], confidence=0.8),
                HTTPHeaderField(key="*", value=["nginx"], confidence=0.3),
                HTTPHeaderField(key="X-Powered-By", value=["PHP"], confidence=0.5),
            ],
            url_micro_signatures=[URLMicroSignature(signature=" /admin ", confidence=0.9)],
            meta_tags=[MetaTag(name=" generator ", content=" nginx ", confidence=0.4)],
            ssl_signatures=[SSLSignature(key="ja3", value=[" abc "], confidence=0.7)],
            plugin_calls=[PluginCall(plugin_name="banner", plugin_args={"depth": 1})],
        ),
        DetectionRule(
            rule_name="WordPress",
            object_name=" WordPress ",
            http_header_fields=[HTTPHeaderField(key="Link", value=["wp-json"], confidence=0.6)],
            page_content_patterns=[
                PageContentSignature(key=" body ", signature=[" wp-content "], text=["  Powered by WordPress  "], confidence=0.9),
            ],
        ),
        DetectionRule(
            rule_name="Nginx URLs",
            object_name="server",
            http_header_fields=[HTTPHeaderField(key="SERVER", value=["openresty"], confidence=0.6)],
            url_micro_signatures=[URLMicroSignature(signature="/login", confidence=0.5)],
            plugin_calls=[PluginCall(plugin_name="banner", plugin_args={"depth": 1})],
        ),
    ]


def test_url_micro_signatures_merge_case_insensitively(rules):
    index = get_all_url_micro_signatures_map(rules)
    assert list(index.keys()) == ["server", "wordpress"]
    assert [s.signature for s in index["server"]] == ["/admin", "/login"]
    assert [s.confidence for s in index["server"]] == [0.9, 0.5]
    assert index["wordpress"] == []


def test_wildcard_header_index_only_keeps_star_keys(rules):
    index = get_all_http_header_fields_map(rules)
    assert list(index.keys()) == ["server"]
    assert list(index["server"].keys()) == ["*"]
    assert index["server"]["*"] == [HTTPHeaderField(key="*", value=["nginx"], confidence=0.3)]


def test_header_index_by_key(rules):
    index = get_http_header_fields_map_by_key(rules, "Server")
    assert list(index.keys()) == ["server"]
    fields = index["server"]["server"]
    # Trimmed and merged across both "server" rules, in rule order
    assert [f.key for f in fields] == ["server", "SERVER"]
    assert fields[0].value == ["nginx"]
    assert fields[1].value == ["openresty"]


def test_header_index_by_key_trims_requested_key(rules):
    index = get_http_header_fields_map_by_key(rules, "  x-powered-by ")
    assert list(index["server"].keys()) == ["x-powered-by"]
    assert get_http_header_fields_map_by_key(rules, "Via") == {}


def test_meta_tags_are_trimmed(rules):
    index = get_all_meta_tags_map(rules)
    assert index["server"] == [MetaTag(name="generator", content="nginx", confidence=0.4)]
    assert index["wordpress"] == []


def test_page_content_text_is_kept_verbatim(rules):
    pattern = get_all_page_content_patterns_map(rules)["wordpress"][0]
    assert pattern.key == "body"
    assert pattern.signature == ["wp-content"]
    assert pattern.text == ["  Powered by WordPress  "]


def test_ssl_signatures_are_returned_as_is(rules):
    index = get_all_ssl_signatures_map(rules)
    assert index["server"] == [SSLSignature(key="ja3", value=[" abc "], confidence=0.7)]


def test_plugin_calls_keep_duplicates(rules):
    index = get_all_plugin_calls_map(rules)
    assert len(index["server"]) == 2
    assert index["server"][0] == index["server"][1]


def test_building_does_not_mutate_rules(rules):
    before = [r.url_micro_signatures[:] for r in rules]
    get_all_url_micro_signatures_map(rules)
    get_all_url_micro_signatures_map(rules)
    assert [r.url_micro_signatures for r in rules] == before
    assert rules[0].url_micro_signatures[0].signature == " /admin "


def test_index_is_idempotent(rules):
    first = DetectionSignatureIndex.from_rules(rules)
    second = DetectionSignatureIndex.from_rules(rules)
    assert first == second
    assert first.object_names() == ["server", "wordpress"]


def test_index_of_no_rules():
    index = DetectionSignatureIndex.from_rules([])
    assert index == DetectionSignatureIndex()
    assert index.object_names() == []
