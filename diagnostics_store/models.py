"""
Diagnostics Store Data Models
=============================
Reference ID constants, the inbound request context, and the persisted
submission record.

This module has no Flask or filesystem dependencies and can be tested
separately from the rest of the store.
"""

import copy
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Any, Mapping


# =============================================================================
# REFERENCE ID FORMAT
# =============================================================================

# Uppercase letters and digits minus the look-alikes 0/O, 1/I/L
REFERENCE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
REFERENCE_GROUPS = 3
REFERENCE_GROUP_LENGTH = 5
REFERENCE_SEPARATOR = "-"

# Pattern accepted on lookup; generated IDs use the narrower alphabet
# (GENERATED_ID_PATTERN).
REFERENCE_ID_PATTERN = re.compile(r"^[A-Z0-9]{5}-[A-Z0-9]{5}-[A-Z0-9]{5}$")

# Pattern every freshly generated ID satisfies
GENERATED_ID_PATTERN = re.compile(
    "^" + REFERENCE_SEPARATOR.join(
        [f"[{REFERENCE_ALPHABET}]{{{REFERENCE_GROUP_LENGTH}}}"] * REFERENCE_GROUPS
    ) + "$"
)


def is_valid_reference_id(value: Any) -> bool:
    """Check that a value is a well-formed reference ID string."""
    # fullmatch: '$' alone would accept a trailing newline
    return isinstance(value, str) and REFERENCE_ID_PATTERN.fullmatch(value) is not None


# =============================================================================
# REQUEST CONTEXT
# =============================================================================

@dataclass
class RequestContext:
    """
    Header access and peer address for one inbound submission.

    Attributes:
        headers: Header name -> value, names lower-cased
        remote_addr: Transport-level peer address, if known
    """
    headers: Dict[str, str] = field(default_factory=dict)
    remote_addr: Optional[str] = None

    def __post_init__(self):
        self.headers = {str(k).lower(): str(v) for k, v in dict(self.headers).items()}

    def get(self, name: str) -> Optional[str]:
        """Return a header value, or None when absent or empty."""
        return self.headers.get(name.lower()) or None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], remote_addr: Optional[str] = None) -> 'RequestContext':
        return cls(headers=dict(headers), remote_addr=remote_addr)

    @classmethod
    def from_flask_request(cls, req) -> 'RequestContext':
        """Build a context from a Flask/Werkzeug request object."""
        headers: Dict[str, str] = {}
        for name, value in req.headers.items():
            key = name.lower()
            # Repeated headers are folded the way proxies join them
            headers[key] = f"{headers[key]}, {value}" if key in headers else value
        return cls(headers=headers, remote_addr=req.remote_addr)


# =============================================================================
# SUBMISSION RECORD
# =============================================================================

@dataclass(frozen=True)
class SubmissionRecord:
    """
    One accepted diagnostics submission.

    Created once by DiagnosticsStore.submit() and never modified afterwards.
    The diagnostics payload is stored verbatim.
    """
    reference_id: str
    submitted_at: str
    client_ip: Optional[str]
    user_agent: Optional[str]
    network_headers: Dict[str, str]
    diagnostics: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the stable on-disk/API field names."""
        return {
            'referenceId': self.reference_id,
            'submittedAt': self.submitted_at,
            'clientIp': self.client_ip,
            'userAgent': self.user_agent,
            'networkHeaders': dict(self.network_headers),
            'diagnostics': copy.deepcopy(self.diagnostics),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SubmissionRecord':
        return cls(
            reference_id=data['referenceId'],
            submitted_at=data['submittedAt'],
            client_ip=data.get('clientIp'),
            user_agent=data.get('userAgent'),
            network_headers=dict(data.get('networkHeaders') or {}),
            diagnostics=data['diagnostics'],
        )
