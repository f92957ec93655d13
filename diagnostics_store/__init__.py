"""
Diagnostics Store Module
========================
Reference ID issuance and diagnostics persistence for NetStats.

Browser-side diagnostics are posted as one JSON object, stored together with
server-derived network metadata, and filed under a short reference ID
(e.g. AB2CD-EFGHJ-23456) that users quote to support.

Components:
- reference_id: collision-checked ID generation
- network: client IP resolution and proxy/CDN header capture
- storage: file-backed, append-only DiagnosticsStore
- routes: Flask blueprint exposing submit and lookup

Version: reads from version.json (module v1.0)
"""

__version__ = "1.0.0"  # module version

from .models import (
    REFERENCE_ALPHABET,
    REFERENCE_ID_PATTERN,
    GENERATED_ID_PATTERN,
    RequestContext,
    SubmissionRecord,
    is_valid_reference_id,
)

from .reference_id import (
    MAX_GENERATION_ATTEMPTS,
    generate_reference_id,
    generate_unique_reference_id,
)

from .network import (
    NETWORK_HEADER_ALLOWLIST,
    extract_network_headers,
    resolve_client_ip,
)

from .storage import (
    DiagnosticsStore,
    get_store,
    set_store,
    reset_store,
)

__all__ = [
    # Models
    'REFERENCE_ALPHABET',
    'REFERENCE_ID_PATTERN',
    'GENERATED_ID_PATTERN',
    'RequestContext',
    'SubmissionRecord',
    'is_valid_reference_id',
    # Generator
    'MAX_GENERATION_ATTEMPTS',
    'generate_reference_id',
    'generate_unique_reference_id',
    # Network
    'NETWORK_HEADER_ALLOWLIST',
    'extract_network_headers',
    'resolve_client_ip',
    # Storage
    'DiagnosticsStore',
    'get_store',
    'set_store',
    'reset_store',
    '__version__'
]
