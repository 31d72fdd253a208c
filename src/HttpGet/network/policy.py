# === NAVMAP v1 ===
# {
#   "module": "HttpGet.network.policy",
#   "purpose": "HTTP policy constants and defaults.",
#   "sections": []
# }
# === /NAVMAP ===

"""HTTP policy constants and defaults.

Defines timeout budgets, connection pooling parameters, redirect limits and
content negotiation defaults for the request orchestration stack. The values
here seed :class:`HttpGet.settings.ClientSettings`; environment overrides are
applied there, never by mutating this module.
"""

# ============================================================================
# Timeout Budgets (seconds)
# ============================================================================

#: Connection establishment timeout (initial TCP 3-way handshake + TLS)
HTTP_CONNECT_TIMEOUT = 5.0

#: Read timeout (time between data packets on established connection)
HTTP_READ_TIMEOUT = 30.0

#: Write timeout (time to send request body)
HTTP_WRITE_TIMEOUT = 15.0

#: Pool timeout (acquiring a connection from the pool)
HTTP_POOL_TIMEOUT = 5.0


# ============================================================================
# Connection Pooling
# ============================================================================

#: Maximum concurrent connections per transport client
MAX_CONNECTIONS = 100

#: Maximum idle connections kept open for reuse
MAX_KEEPALIVE_CONNECTIONS = 20

#: How long to keep idle connections alive (seconds)
KEEPALIVE_EXPIRY = 5.0

#: HTTP/2 requires the optional ``h2`` package; HTTP/1.1 is the default
HTTP2_ENABLED = False


# ============================================================================
# Redirects
# ============================================================================

#: Redirects are always followed by the resolver, never by httpx itself
FOLLOW_REDIRECTS = False

#: Maximum number of redirect hops before the chain is declared a loop
MAX_REDIRECT_HOPS = 10

#: Status codes that move a resource and carry a Location header
REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})

#: Redirects that keep the original method and body
METHOD_PRESERVING_REDIRECTS = frozenset({307, 308})


# ============================================================================
# Content Negotiation
# ============================================================================

#: Value injected as ``Accept-Encoding`` when compression is enabled
DEFAULT_ACCEPT_ENCODING = "gzip, deflate"

#: Content codings the decoder knows how to reverse
SUPPORTED_CONTENT_ENCODINGS = frozenset({"gzip", "x-gzip", "deflate"})


# ============================================================================
# Request Identity
# ============================================================================

#: User-Agent template; filled with the package version
USER_AGENT_TEMPLATE = "http-get/{version} (+{project_url})"

#: Project URL for the default user-agent
PROJECT_URL = "https://github.com/SaltwaterC/http-get"

#: Methods accepted by the orchestrator
SUPPORTED_METHODS = frozenset({"HEAD", "GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"})

#: Schemes the transport can speak
SUPPORTED_SCHEMES = frozenset({"http", "https"})


__all__ = [
    # Timeouts
    "HTTP_CONNECT_TIMEOUT",
    "HTTP_READ_TIMEOUT",
    "HTTP_WRITE_TIMEOUT",
    "HTTP_POOL_TIMEOUT",
    # Connection pooling
    "MAX_CONNECTIONS",
    "MAX_KEEPALIVE_CONNECTIONS",
    "KEEPALIVE_EXPIRY",
    "HTTP2_ENABLED",
    # Redirects
    "FOLLOW_REDIRECTS",
    "MAX_REDIRECT_HOPS",
    "REDIRECT_STATUS_CODES",
    "METHOD_PRESERVING_REDIRECTS",
    # Content negotiation
    "DEFAULT_ACCEPT_ENCODING",
    "SUPPORTED_CONTENT_ENCODINGS",
    # Identity
    "USER_AGENT_TEMPLATE",
    "PROJECT_URL",
    "SUPPORTED_METHODS",
    "SUPPORTED_SCHEMES",
]
