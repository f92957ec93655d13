"""
Reference ID Generator
======================
Short, human-shareable identifiers for diagnostics submissions.

Format: XXXXX-XXXXX-XXXXX drawn from REFERENCE_ALPHABET, which leaves out
characters that are easy to misread over the phone (0/O, 1/I/L).

The randomness is not cryptographic. IDs only need to be readable and
unlikely to collide; they are not secrets.
"""

import random
from typing import Callable, Optional

from config_logging import get_logger, ExhaustedRetriesError

from .models import (
    REFERENCE_ALPHABET,
    REFERENCE_GROUPS,
    REFERENCE_GROUP_LENGTH,
    REFERENCE_SEPARATOR,
)

logger = get_logger('diagnostics_store')

MAX_GENERATION_ATTEMPTS = 10


def generate_reference_id(rng: Optional[random.Random] = None) -> str:
    """Draw a random reference ID. Pure apart from consuming randomness."""
    rng = rng or random
    groups = [
        ''.join(rng.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_GROUP_LENGTH))
        for _ in range(REFERENCE_GROUPS)
    ]
    return REFERENCE_SEPARATOR.join(groups)


def generate_unique_reference_id(exists_check: Callable[[str], bool],
                                 max_attempts: int = MAX_GENERATION_ATTEMPTS,
                                 rng: Optional[random.Random] = None) -> str:
    """
    Generate an ID that exists_check() reports as unused.

    Args:
        exists_check: Returns True when a record with the given ID exists
        max_attempts: Ceiling on candidates tried before giving up
        rng: Optional random source (anything with choice())

    Raises:
        ExhaustedRetriesError: every candidate collided
    """
    for attempt in range(1, max_attempts + 1):
        candidate = generate_reference_id(rng)
        if not exists_check(candidate):
            return candidate
        logger.warning("Reference ID collision", reference_id=candidate, attempt=attempt)

    logger.error("Reference ID generation exhausted", attempts=max_attempts)
    raise ExhaustedRetriesError(max_attempts)
