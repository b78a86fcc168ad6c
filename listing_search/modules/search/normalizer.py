"""
Criteria normalization.

Turns whatever the query analyzer produced (an envelope, a flat dict, a JSON
string or a bare sentence) into a canonical SearchCriteria plus the
validation flags that decide whether the search runs at all.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import json
import math
import re
from listing_search.models.search import (
    SearchCriteria, ValidationFlags, QuerySentinel, ClarificationReason,
    PriceOutlier, RangeIssue, SearchMessage, SortOption
)
from listing_search.modules.search.profiles import ListingProfile
import logging

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_COMMA = re.compile(",")
_SOFT_SEPARATORS = re.compile(r",|/|\s+and\s+|\s*&\s*", re.IGNORECASE)

_SENTINEL_MESSAGES = {
    QuerySentinel.NOT_REAL_ESTATE: SearchMessage.NOT_REAL_ESTATE_QUERY,
    QuerySentinel.INVALID_PROPERTY_TYPE: SearchMessage.INVALID_PROPERTY_TYPE_QUERY,
    QuerySentinel.UNREALISTIC_DESCRIPTION: SearchMessage.UNREALISTIC_DESCRIPTION_QUERY,
}


def sanitize_number(value: Any) -> Optional[float]:
    """Parse "₱5,000,000" style input; anything unparseable is None, never 0"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        if cleaned in ("", "-", "."):
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def normalize_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def arrayify(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def normalize_list(
    value: Any, separators: Optional[re.Pattern] = _COMMA, lowercase: bool = True
) -> Optional[List[str]]:
    """Scalar, delimited string or list -> trimmed, deduplicated list; None when empty"""
    items = []
    for item in arrayify(value):
        if item is None or isinstance(item, (dict, list)):
            continue
        parts = separators.split(str(item)) if separators is not None else [str(item)]
        for part in parts:
            part = part.strip()
            if lowercase:
                part = part.lower()
            if part and part not in items:
                items.append(part)
    return items or None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class NormalizedCriteria:
    criteria: SearchCriteria
    flags: ValidationFlags

    @property
    def message(self) -> Optional[SearchMessage]:
        return CriteriaNormalizer.gate(self.flags, self.criteria)


class CriteriaNormalizer:
    """Canonicalizes analyzer output for one listing profile"""

    def __init__(self, profile: ListingProfile):
        self.profile = profile
        self.config = profile.config

    def normalize(self, raw: Any) -> NormalizedCriteria:
        """Normalize raw criteria; malformed input degrades to an empty query instead of raising"""
        try:
            return self._normalize(raw)
        except Exception as e:
            logger.error(f"Criteria normalization failed, falling back to empty criteria: {e}")
            return NormalizedCriteria(
                criteria=SearchCriteria(requested_count=self.config.default_requested_count),
                flags=ValidationFlags()
            )

    @staticmethod
    def gate(flags: ValidationFlags, criteria: SearchCriteria) -> Optional[SearchMessage]:
        """Message that stops the search before filtering, checked in priority order"""
        if criteria.is_terminal:
            return _SENTINEL_MESSAGES[criteria.sentinel]
        if flags.needs_clarification:
            return SearchMessage.NEEDS_CLARIFICATION
        if flags.unrealistic_price:
            return SearchMessage.UNREALISTIC_PRICE_QUERY
        if flags.range_issue is not None:
            return SearchMessage.INVALID_RANGE_QUERY
        return None

    # --- envelope ----------------------------------------------------------

    def _parse_input(self, raw: Any) -> Any:
        if isinstance(raw, str):
            try:
                return json.loads(raw)
            except ValueError:
                logger.warning("Criteria is not JSON, treating it as free text")
                return {"query": raw}
        return raw

    def _unwrap(self, data: Any) -> Tuple[Dict[str, Any], Dict[str, Any], List[Any], Any]:
        """Split the analyzer envelope into search params, flags, exclusions and soft requirements"""
        if not isinstance(data, dict):
            params = {"query": data} if data is not None else {}
            return params, {}, [], None

        flags = data.get("flags") if isinstance(data.get("flags"), dict) else {}
        excluded = []
        for key in self.profile.exclusion_keys:
            excluded += arrayify(data.get(key))

        if isinstance(data.get("apiSearchParams"), dict):
            params = dict(data["apiSearchParams"])
            soft = params.get("soft_requirements", data.get("soft_requirements"))
        else:
            params = dict(data)
            params.pop("flags", None)
            soft = data.get("soft_requirements")

        for key in self.profile.exclusion_keys + ("excluded_ids",):
            if key in params:
                excluded += arrayify(params.pop(key))

        return params, flags, excluded, soft

    # --- ranges and prices -------------------------------------------------

    @staticmethod
    def _legacy_price(params: Dict[str, Any]) -> None:
        price = params.get("price")
        if not isinstance(price, dict):
            return
        possible_min = next((price[k] for k in ("min", "minimum", "from") if price.get(k) is not None), None)
        possible_max = next((price[k] for k in ("max", "maximum", "to") if price.get(k) is not None), None)
        if params.get("min_price") is None and sanitize_number(possible_min) is not None:
            params["min_price"] = sanitize_number(possible_min)
        if params.get("max_price") is None and sanitize_number(possible_max) is not None:
            params["max_price"] = sanitize_number(possible_max)

    @staticmethod
    def _normalize_range(
        low: Any, high: Any, negative_issue: RangeIssue
    ) -> Tuple[Optional[float], Optional[float], Optional[RangeIssue]]:
        low = sanitize_number(low)
        high = sanitize_number(high)
        if (low is not None and low < 0) or (high is not None and high < 0):
            return None, None, negative_issue
        if low is not None and high is not None and low > high:
            return None, None, RangeIssue.MIN_GREATER_THAN_MAX
        return low, high, None

    def _detect_outlier(self, value: Optional[float]) -> Optional[PriceOutlier]:
        if value is None:
            return None
        if value < self.config.low_price_threshold:
            return PriceOutlier.TOO_LOW
        if value > self.config.high_price_threshold:
            return PriceOutlier.TOO_HIGH
        return None

    # --- flags -------------------------------------------------------------

    @staticmethod
    def _flag(flags: Dict[str, Any], camel: str, snake: str) -> Any:
        return flags.get(camel, flags.get(snake))

    @staticmethod
    def _enum_value(enum_cls, value: Any):
        if value is None or isinstance(value, bool):
            return None
        try:
            return enum_cls(str(value).strip().upper())
        except ValueError:
            return None

    def _clarification(self, flags: Dict[str, Any]) -> Optional[ClarificationReason]:
        needs = self._flag(flags, "needsClarification", "needs_clarification")
        if not needs:
            return None
        reason = self._flag(flags, "clarificationReason", "clarification_reason")
        return self._enum_value(ClarificationReason, reason) or ClarificationReason.UNSPECIFIED

    # --- main path ---------------------------------------------------------

    def _requested_count(self, value: Any) -> int:
        count = sanitize_number(value)
        if count is None or count <= 0:
            count = self.config.default_requested_count
        return min(max(1, round_half_up(count)), self.config.max_requested_count)

    def _first_present(self, params: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
        for key in keys:
            if params.get(key) is not None:
                return params[key]
        return None

    def _normalize(self, raw: Any) -> NormalizedCriteria:
        params, incoming_flags, raw_excluded, incoming_soft = self._unwrap(self._parse_input(raw))

        excluded_ids = []
        for item in raw_excluded:
            if item is None:
                continue
            item = str(item)
            if item not in excluded_ids:
                excluded_ids.append(item)

        query = normalize_string(params.get("query")) or ""
        requested_count = self._requested_count(params.get("requested_count"))

        clarification_options = normalize_list(
            self._flag(incoming_flags, "clarificationOptions", "clarification_options"),
            separators=None, lowercase=False
        ) or []
        soft_notes = normalize_list(
            self._flag(incoming_flags, "softNotes", "soft_notes"), separators=None, lowercase=False
        ) or []

        sentinel = next((s for s in QuerySentinel if s.value == query), None)
        if sentinel is not None:
            logger.info(f"Analyzer returned terminal query {sentinel.value}")
            return NormalizedCriteria(
                criteria=SearchCriteria(
                    query=query,
                    sentinel=sentinel,
                    requested_count=requested_count,
                    excluded_ids=excluded_ids
                ),
                flags=ValidationFlags(
                    clarification_reason=self._clarification(incoming_flags),
                    clarification_options=clarification_options,
                    soft_notes=soft_notes
                )
            )

        self._legacy_price(params)

        # Range issues supplied by the analyzer take precedence over local findings
        range_issue = self._enum_value(
            RangeIssue, self._flag(incoming_flags, "rangeIssue", "range_issue")
        )
        ranges = {}
        negative_issues = {
            "price": RangeIssue.NEGATIVE_PRICE,
            "bedrooms": RangeIssue.NEGATIVE_BEDROOMS,
            "bathrooms": RangeIssue.NEGATIVE_BATHROOMS,
            "seating": RangeIssue.NEGATIVE_SEATING,
        }
        for field in ("price",) + self.profile.range_fields:
            low, high, issue = self._normalize_range(
                params.get(f"min_{field}"), params.get(f"max_{field}"), negative_issues[field]
            )
            ranges[f"min_{field}"] = low
            ranges[f"max_{field}"] = high
            range_issue = range_issue or issue

        price_outlier = self._enum_value(
            PriceOutlier, self._flag(incoming_flags, "priceOutlier", "price_outlier")
        )
        if price_outlier is None:
            price_outlier = (
                self._detect_outlier(ranges["min_price"])
                or self._detect_outlier(ranges["max_price"])
            )
        if price_outlier is None and self._flag(incoming_flags, "unrealisticPrice", "unrealistic_price") is True:
            price_outlier = PriceOutlier.UNKNOWN
        if price_outlier is not None:
            logger.info(f"Price outlier {price_outlier.value}, clearing price bounds")
            ranges["min_price"] = None
            ranges["max_price"] = None

        location = normalize_list(self._first_present(params, ("filter_location", "location")))
        category = normalize_list(self._first_present(params, self.profile.category_keys))
        sort_by = params.get("sort_by")
        sort_by = SortOption(sort_by) if sort_by in ("price_asc", "price_desc") else None

        list_filters = {
            field: normalize_list(self._first_present(params, keys))
            for field, keys in self.profile.list_keys.items()
        }
        soft_requirements = (
            normalize_list(params.get("soft_requirements"), _SOFT_SEPARATORS)
            or normalize_list(incoming_soft, _SOFT_SEPARATORS)
        )

        criteria = SearchCriteria(
            query=query,
            location=", ".join(location) if location else None,
            category=", ".join(category) if category else None,
            soft_requirements=soft_requirements,
            sort_by=sort_by,
            requested_count=requested_count,
            excluded_ids=excluded_ids,
            **ranges,
            **list_filters
        )
        flags = ValidationFlags(
            clarification_reason=self._clarification(incoming_flags),
            clarification_options=clarification_options,
            price_outlier=price_outlier,
            range_issue=range_issue,
            soft_notes=soft_notes
        )

        logger.debug(f"Normalized {self.profile.name} criteria: {criteria.model_dump(exclude_none=True)}")
        return NormalizedCriteria(criteria=criteria, flags=flags)
