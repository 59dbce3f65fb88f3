"""Security - trust policy applied to MCP tool output."""

from mcplink.security.trust import (
    SANITIZE_PREFIX,
    UNTRUSTED_PREFIX,
    apply_trust_policy,
    strip_dangerous,
    truncate,
)

__all__ = [
    "SANITIZE_PREFIX",
    "UNTRUSTED_PREFIX",
    "apply_trust_policy",
    "strip_dangerous",
    "truncate",
]
