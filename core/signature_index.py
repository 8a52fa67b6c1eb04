"""Per-object signature indices built from detection rules.

Each builder groups one kind of signature by object name (trimmed and
lower-cased) so the page matcher can fetch everything known about an object
in one lookup. Rules sharing an object name are merged by appending, in rule
order, without removing duplicates. The input rules are never modified.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence, TypeVar
import logging
from models.detection_rule import (
    DetectionRule,
    HTTPHeaderField,
    MetaTag,
    PageContentSignature,
    PluginCall,
    SSLSignature,
    URLMicroSignature,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

WILDCARD_HEADER_KEY = "*"

HeaderFieldsMap = Dict[str, Dict[str, List[HTTPHeaderField]]]


def _group_by_object(
    rules: Sequence[DetectionRule],
    getter: Callable[[DetectionRule], List[T]],
) -> Dict[str, List[T]]:
    grouped: Dict[str, List[T]] = {}
    for rule in rules:
        key = rule.get_index_key()
        if key not in grouped:
            grouped[key] = []
        grouped[key].extend(getter(rule))
    return grouped


def _group_header_fields(
    rules: Sequence[DetectionRule],
    wanted: Callable[[HTTPHeaderField], bool],
) -> HeaderFieldsMap:
    headers: HeaderFieldsMap = {}
    for rule in rules:
        for header in rule.get_all_http_header_fields():
            if not wanted(header):
                continue
            by_key = headers.setdefault(rule.get_index_key(), {})
            by_key.setdefault(header.key.lower(), []).append(header)
    return headers


def get_all_http_header_fields_map(rules: Sequence[DetectionRule]) -> HeaderFieldsMap:
    """
    Wildcard header signatures per object.

    Only fields keyed "*" (values that may show up in any header) are
    included. The result maps object -> "*" -> fields.
    """
    headers = _group_header_fields(rules, lambda h: h.key == WILDCARD_HEADER_KEY)
    logger.debug(f"Indexed wildcard header fields for {len(headers)} objects")
    return headers


def get_http_header_fields_map_by_key(rules: Sequence[DetectionRule], key: str) -> HeaderFieldsMap:
    """
    Header signatures for one header name per object.

    Args:
        rules: Detection rules to index
        key: Header name, matched ignoring case and surrounding whitespace

    Returns:
        object -> lower-cased header key -> fields
    """
    wanted_key = key.strip().lower()
    headers = _group_header_fields(rules, lambda h: h.key.lower() == wanted_key)
    logger.debug(f"Indexed '{wanted_key}' header fields for {len(headers)} objects")
    return headers


def get_all_meta_tags_map(rules: Sequence[DetectionRule]) -> Dict[str, List[MetaTag]]:
    return _group_by_object(rules, DetectionRule.get_all_meta_tags)


def get_all_url_micro_signatures_map(rules: Sequence[DetectionRule]) -> Dict[str, List[URLMicroSignature]]:
    return _group_by_object(rules, DetectionRule.get_all_url_micro_signatures)


def get_all_page_content_patterns_map(rules: Sequence[DetectionRule]) -> Dict[str, List[PageContentSignature]]:
    return _group_by_object(rules, DetectionRule.get_all_page_content_patterns)


def get_all_ssl_signatures_map(rules: Sequence[DetectionRule]) -> Dict[str, List[SSLSignature]]:
    return _group_by_object(rules, DetectionRule.get_all_ssl_signatures)


def get_all_plugin_calls_map(rules: Sequence[DetectionRule]) -> Dict[str, List[PluginCall]]:
    return _group_by_object(rules, DetectionRule.get_plugin_calls)


@dataclass(frozen=True)
class DetectionSignatureIndex:
    """All signature indices for one rule collection."""
    http_headers: HeaderFieldsMap = field(default_factory=dict)
    meta_tags: Dict[str, List[MetaTag]] = field(default_factory=dict)
    url_micro_signatures: Dict[str, List[URLMicroSignature]] = field(default_factory=dict)
    page_content_patterns: Dict[str, List[PageContentSignature]] = field(default_factory=dict)
    ssl_signatures: Dict[str, List[SSLSignature]] = field(default_factory=dict)
    plugin_calls: Dict[str, List[PluginCall]] = field(default_factory=dict)

    @classmethod
    def from_rules(cls, rules: Sequence[DetectionRule]) -> "DetectionSignatureIndex":
        index = cls(
            http_headers=get_all_http_header_fields_map(rules),
            meta_tags=get_all_meta_tags_map(rules),
            url_micro_signatures=get_all_url_micro_signatures_map(rules),
            page_content_patterns=get_all_page_content_patterns_map(rules),
            ssl_signatures=get_all_ssl_signatures_map(rules),
            plugin_calls=get_all_plugin_calls_map(rules),
        )
        logger.info(f"Built signature index for {len(index.object_names())} objects from {len(rules)} rules")
        return index

    def object_names(self) -> List[str]:
        """Indexed object names in first-seen order."""
        return list(self.meta_tags.keys())
