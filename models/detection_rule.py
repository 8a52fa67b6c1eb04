from dataclasses import dataclass, field
from typing import Dict, List
from models.custom_value import CustomValue


def _trim_all(values: List[str]) -> List[str]:
    return [v.strip() for v in values]


@dataclass(frozen=True)
class HTTPHeaderField:
    """A header signature. Key "*" means the values may appear in any header."""
    key: str
    value: List[str] = field(default_factory=list)
    confidence: float = 0.5

    def get_key(self) -> str:
        return self.key.strip()

    def get_value(self, index: int) -> str:
        """Return the trimmed value at index, or an empty string when out of range."""
        if index < 0 or index >= len(self.value):
            return ""
        return self.value[index].strip()

    def get_all_values(self) -> List[str]:
        return _trim_all(self.value)

    def get_confidence(self) -> float:
        return self.confidence

    def normalized(self) -> "HTTPHeaderField":
        return HTTPHeaderField(key=self.get_key(), value=self.get_all_values(), confidence=self.confidence)


@dataclass(frozen=True)
class MetaTag:
    name: str
    content: str = ""
    confidence: float = 0.5

    def get_name(self) -> str:
        return self.name.strip()

    def get_content(self) -> str:
        return self.content.strip()


@dataclass(frozen=True)
class PageContentSignature:
    key: str # Element or attribute the signature applies to (e.g. "body", "script")
    signature: List[str] = field(default_factory=list)
    text: List[str] = field(default_factory=list) # Literal samples, kept verbatim
    confidence: float = 0.5


@dataclass(frozen=True)
class URLMicroSignature:
    signature: str
    confidence: float = 0.5


@dataclass(frozen=True)
class SSLSignature:
    key: str # Fingerprint kind, e.g. "ja3", "ja4", "jarm"
    value: List[str] = field(default_factory=list)
    confidence: float = 0.5


@dataclass(frozen=True)
class PluginCall:
    """An external plugin to run when the owning rule matches."""
    plugin_name: str
    plugin_args: Dict[str, CustomValue] = field(default_factory=dict)


@dataclass(frozen=True)
class DetectionRule:
    """Describes how to recognise one object (technology, device, risk indicator)."""
    rule_name: str
    object_name: str
    http_header_fields: List[HTTPHeaderField] = field(default_factory=list)
    page_content_patterns: List[PageContentSignature] = field(default_factory=list)
    url_micro_signatures: List[URLMicroSignature] = field(default_factory=list)
    meta_tags: List[MetaTag] = field(default_factory=list)
    ssl_signatures: List[SSLSignature] = field(default_factory=list)
    implies: List[str] = field(default_factory=list) # Names of rules/objects implied by a match
    plugin_calls: List[PluginCall] = field(default_factory=list)

    def get_rule_name(self) -> str:
        return self.rule_name.strip()

    def get_object_name(self) -> str:
        return self.object_name.strip()

    def get_index_key(self) -> str:
        """Key used by the signature indices: trimmed and lower-cased object name."""
        return self.object_name.strip().lower()

    def get_implies(self) -> List[str]:
        # Raw adjacency only; resolving the implication graph is up to the matcher
        return list(self.implies)

    def get_plugin_calls(self) -> List[PluginCall]:
        return list(self.plugin_calls)

    def get_all_http_header_fields(self) -> List[HTTPHeaderField]:
        return [h.normalized() for h in self.http_header_fields]

    def get_all_page_content_patterns(self) -> List[PageContentSignature]:
        """
        Page content patterns with key and signatures trimmed.

        The text samples are shown to users as context, so they are returned
        exactly as written in the rule.
        """
        return [
            PageContentSignature(
                key=p.key.strip(),
                signature=_trim_all(p.signature),
                text=list(p.text),
                confidence=p.confidence,
            )
            for p in self.page_content_patterns
        ]

    def get_all_ssl_signatures(self) -> List[SSLSignature]:
        return list(self.ssl_signatures)

    def get_all_url_micro_signatures(self) -> List[URLMicroSignature]:
        return [
            URLMicroSignature(signature=s.signature.strip(), confidence=s.confidence)
            for s in self.url_micro_signatures
        ]

    def get_all_meta_tags(self) -> List[MetaTag]:
        return [
            MetaTag(name=t.get_name(), content=t.get_content(), confidence=t.confidence)
            for t in self.meta_tags
        ]
