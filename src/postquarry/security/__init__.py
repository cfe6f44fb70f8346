"""
Request guarding for PostQuarry.

Provides post URL validation and the allowed-host predicates that every
outgoing request is checked against.
"""

from .validation import (
    MEDIA_HOST_RULES,
    PAGE_ALLOWED_HOSTS,
    POST_URL_RULES,
    HostPolicy,
    MediaHostRules,
    PostURLRules,
    URLValidationError,
    is_allowed_media_host,
    is_allowed_media_url,
    is_host_allowed,
    validate_post_url,
)

__all__ = [
    "HostPolicy",
    "MediaHostRules",
    "PostURLRules",
    "MEDIA_HOST_RULES",
    "POST_URL_RULES",
    "PAGE_ALLOWED_HOSTS",
    "URLValidationError",
    "is_allowed_media_host",
    "is_allowed_media_url",
    "is_host_allowed",
    "validate_post_url",
]
