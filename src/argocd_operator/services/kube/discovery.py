"""Cached probes for optional API groups."""

from __future__ import annotations

import logging

from ...constants import API_GROUP_MONITORING, API_GROUP_ROUTE, API_GROUP_TEMPLATE
from ...utils.cache import get_cached_object, make_cache_key, set_cached_object
from .base import ClusterClient

logger = logging.getLogger(__name__)


class FeatureProbe:
    """Answers whether optional APIs (routes, monitoring, templates) are served.

    Results are cached for FEATURE_PROBE_TTL_SECONDS. The cache is read
    without locking; on a race the later write wins.
    """

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster

    def has_group(self, group: str) -> bool:
        key = make_cache_key("apigroup", group)
        cached = get_cached_object(key)
        if cached is not None:
            return cached
        present = bool(self.cluster.has_api_group(group))
        logger.debug(f"API group {group} present: {present}")
        set_cached_object(key, present)
        return present

    def route_available(self) -> bool:
        return self.has_group(API_GROUP_ROUTE)

    def monitoring_available(self) -> bool:
        return self.has_group(API_GROUP_MONITORING)

    def template_available(self) -> bool:
        return self.has_group(API_GROUP_TEMPLATE)
