"""
Extraction Rule Engine

An extraction rule derives a dimension's value from another tracked attribute.
Rules are kept as an ordered list; at tracking time the first rule that
produces a value wins.

Source dimensions are registered providers. A provider declares whether its
pattern is a regular expression (which must then hold exactly one capture
group) and how to read its raw value from the tracked attributes.

Example:
    rules = validate_extractions([
        {"dimension": "urlparam", "pattern": "category"},
        {"dimension": "url", "pattern": "/shop/(.+)/"},
    ])
    value = extract_value(rules, {"url": "https://example.com/shop/shoes/"})
"""

import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import parse_qsl, urlsplit

import structlog

from custom_dimensions.config import get_settings
from custom_dimensions.dimensions.exceptions import (
    ExtractionErrorReason,
    InvalidExtraction,
)

logger = structlog.get_logger(__name__)

Attributes = Mapping[str, Optional[str]]


@dataclass(frozen=True)
class SourceDimension:
    """A tracked attribute extraction rules can read from"""
    id: str
    name: str
    read: Callable[[Attributes, str], Optional[str]]
    pattern_is_regex: bool = True


_SOURCE_DIMENSIONS: "OrderedDict[str, SourceDimension]" = OrderedDict()


def register_source_dimension(source: SourceDimension) -> SourceDimension:
    """Add a source dimension; later registrations replace earlier ones by id."""
    _SOURCE_DIMENSIONS[source.id] = source
    return source


def get_source_dimension(dimension_id: str) -> Optional[SourceDimension]:
    return _SOURCE_DIMENSIONS.get(dimension_id)


def get_supported_dimensions() -> "OrderedDict[str, str]":
    """Supported source dimension ids mapped to their display names, in registration order"""
    return OrderedDict((source.id, source.name) for source in _SOURCE_DIMENSIONS.values())


def _read_url(attributes: Attributes, pattern: str) -> Optional[str]:
    return attributes.get("url")


def _read_url_param(attributes: Attributes, pattern: str) -> Optional[str]:
    # The pattern names the query parameter
    url = attributes.get("url")
    if not url:
        return None
    for key, value in parse_qsl(urlsplit(url).query, keep_blank_values=True):
        if key == pattern:
            return value
    return None


def _read_action_name(attributes: Attributes, pattern: str) -> Optional[str]:
    return attributes.get("action_name")


register_source_dimension(SourceDimension("url", "Page URL", _read_url))
register_source_dimension(
    SourceDimension("urlparam", "Page URL Parameter", _read_url_param, pattern_is_regex=False)
)
register_source_dimension(SourceDimension("action_name", "Page Title", _read_action_name))


@dataclass(frozen=True)
class ExtractionRule:
    """A (source dimension, pattern) pair"""
    dimension: str
    pattern: str

    @property
    def source(self) -> SourceDimension:
        source = get_source_dimension(self.dimension)
        if source is None:
            raise InvalidExtraction(
                f"Invalid dimension '{self.dimension}' used in an extraction",
                reason=ExtractionErrorReason.UNSUPPORTED_SOURCE,
            )
        return source

    def to_dict(self) -> Dict[str, str]:
        return {"dimension": self.dimension, "pattern": self.pattern}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtractionRule":
        return cls(dimension=data["dimension"], pattern=data["pattern"])

    def extract(self, attributes: Attributes, case_sensitive: bool = True) -> Optional[str]:
        """Value this rule yields for the tracked attributes, or None when it does not match."""
        source = self.source
        value = source.read(attributes, self.pattern)
        if value is None or value == "":
            return None
        if not source.pattern_is_regex:
            return value

        flags = 0 if case_sensitive else re.IGNORECASE
        match = re.search(self.pattern, value, flags)
        if match is None:
            return None
        return match.group(1)


def extract_value(
    rules: Iterable[ExtractionRule],
    attributes: Attributes,
    case_sensitive: bool = True,
) -> Optional[str]:
    """First value produced by ``rules`` in order, or None."""
    for rule in rules:
        value = rule.extract(attributes, case_sensitive)
        if value is not None:
            return value
    return None


def _coerce_rule(raw: Any, position: int) -> ExtractionRule:
    if isinstance(raw, ExtractionRule):
        return raw
    if not isinstance(raw, Mapping) or "dimension" not in raw or "pattern" not in raw:
        raise InvalidExtraction(
            "Each extraction needs to be an object with a 'dimension' and a 'pattern' key",
            reason=ExtractionErrorReason.MALFORMED_PATTERN,
            position=position,
        )
    return ExtractionRule(dimension=raw["dimension"], pattern=raw["pattern"])


def validate_rule(
    rule: ExtractionRule,
    position: int,
    pattern_max_length: Optional[int] = None,
) -> ExtractionRule:
    """Check a single rule; ``position`` is reported back on failure."""
    if pattern_max_length is None:
        pattern_max_length = get_settings().dimensions.pattern_max_length

    source = get_source_dimension(rule.dimension) if isinstance(rule.dimension, str) else None
    if source is None:
        supported = ", ".join(get_supported_dimensions())
        raise InvalidExtraction(
            f"Invalid dimension '{rule.dimension}' used in an extraction. Available dimensions are: {supported}",
            reason=ExtractionErrorReason.UNSUPPORTED_SOURCE,
            position=position,
        )

    pattern = rule.pattern
    if not isinstance(pattern, str) or pattern == "":
        raise InvalidExtraction(
            "The pattern of an extraction must not be empty",
            reason=ExtractionErrorReason.MALFORMED_PATTERN,
            position=position,
        )
    if len(pattern) > pattern_max_length:
        raise InvalidExtraction(
            f"The pattern of an extraction is too long, maximum {pattern_max_length} characters allowed",
            reason=ExtractionErrorReason.MALFORMED_PATTERN,
            position=position,
        )

    if not source.pattern_is_regex:
        return rule

    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise InvalidExtraction(
            f"The pattern '{pattern}' is not a valid regular expression: {e}",
            reason=ExtractionErrorReason.MALFORMED_PATTERN,
            position=position,
        ) from e

    if compiled.groups != 1:
        raise InvalidExtraction(
            "You need to group exactly one part of the regular expression inside round brackets, "
            f"eg 'index_(.+).html'. The pattern '{pattern}' has {compiled.groups} groups",
            reason=ExtractionErrorReason.CAPTURE_GROUP_COUNT,
            position=position,
        )
    return rule


def validate_extractions(
    rules: Optional[Sequence[Any]],
    max_extractions: Optional[int] = None,
) -> List[ExtractionRule]:
    """
    Validate and normalize a list of extraction rules.

    Accepts a list or tuple of ``ExtractionRule`` instances or mappings with
    ``dimension`` and ``pattern`` keys. Unordered collections are rejected
    since the first matching rule wins. The returned list keeps the input order.

    Raises:
        InvalidExtraction: On the first offending rule, or when there are too many
    """
    if rules is None:
        return []
    if not isinstance(rules, Sequence) or isinstance(rules, (str, bytes)):
        raise InvalidExtraction(
            "Extractions have to be passed as an ordered list",
            reason=ExtractionErrorReason.MALFORMED_PATTERN,
        )

    if max_extractions is None:
        max_extractions = get_settings().dimensions.max_extractions

    normalized = [_coerce_rule(raw, position) for position, raw in enumerate(rules)]
    if len(normalized) > max_extractions:
        raise InvalidExtraction(
            f"Too many extractions given, maximum {max_extractions} extractions allowed",
            reason=ExtractionErrorReason.TOO_MANY_RULES,
        )

    for position, rule in enumerate(normalized):
        validate_rule(rule, position)

    logger.debug("Extractions validated", count=len(normalized))
    return normalized
