"""Utility functions for the Argo CD Operator."""

from .cache import (
    get_cached_object,
    invalidate_cache,
    make_cache_key,
    set_cached_object,
)
from .conditions import (
    set_error_condition,
    set_reconciled_condition,
    set_source_namespace_conflict_condition,
    set_sso_condition,
    update_condition,
)
from .context import (
    get_context_dict,
    get_correlation_id,
    with_correlation_id,
)
from .events import emit_event
from .images import combine_image_tag, resolve_image
from .locks import KeyedLock
from .rate_limit import handle_rate_limit_error, rate_limit_k8s

__all__ = [
    "update_condition",
    "set_reconciled_condition",
    "set_error_condition",
    "set_sso_condition",
    "set_source_namespace_conflict_condition",
    "emit_event",
    "get_cached_object",
    "set_cached_object",
    "invalidate_cache",
    "make_cache_key",
    "rate_limit_k8s",
    "handle_rate_limit_error",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
    "combine_image_tag",
    "resolve_image",
    "KeyedLock",
]
