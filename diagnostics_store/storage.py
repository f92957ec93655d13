"""
Diagnostics Store Storage Module
================================
File-backed persistence for diagnostics submissions.

Each record lives in <profiles_dir>/<REFERENCE-ID>.json. Records are written
once and never modified. New files are published with a hard link from a
fully written temporary file, so a record is either complete or absent and
two submissions can never claim the same ID.
"""

import copy
import json
import os
import random
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from config_logging import (
    get_config, get_logger,
    ValidationError, FormatError, NotFoundError, StorageError,
)

from .models import RequestContext, SubmissionRecord, is_valid_reference_id
from .network import extract_network_headers, resolve_client_ip
from .reference_id import MAX_GENERATION_ATTEMPTS, generate_unique_reference_id

logger = get_logger('diagnostics_store')

RECORD_SUFFIX = '.json'


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# =============================================================================
# STORAGE CLASS
# =============================================================================

class DiagnosticsStore:
    """
    Append-only store of SubmissionRecords keyed by reference ID.

    Operations:
    - submit(): validate, derive network metadata, persist, return the ID
    - retrieve(): validate the ID format, load the record
    - exists(): existence check used during ID generation
    """

    def __init__(self, root: Union[str, Path],
                 max_attempts: int = MAX_GENERATION_ATTEMPTS,
                 rng: Optional[random.Random] = None):
        self.root = Path(root)
        self.max_attempts = max_attempts
        self.rng = rng

    def ensure_root(self):
        """Create the profiles directory if it does not exist yet."""
        try:
            if not self.root.is_dir():
                self.root.mkdir(parents=True, exist_ok=True)
                logger.info("Created profiles directory", path=str(self.root))
        except OSError as e:
            logger.exception(f"Cannot create profiles directory: {e}", path=str(self.root))
            raise StorageError("Diagnostics storage is unavailable") from e

    def path_for(self, reference_id: str) -> Path:
        return self.root / f"{reference_id}{RECORD_SUFFIX}"

    def exists(self, reference_id: str) -> bool:
        """Check whether a record with this ID has been persisted."""
        return self.path_for(reference_id).exists()

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def submit(self, payload: Any, context: Optional[RequestContext] = None) -> str:
        """
        Persist a diagnostics payload and return its new reference ID.

        Raises:
            ValidationError: payload is not a JSON object
            ExhaustedRetriesError: no unused ID within the attempt ceiling
            StorageError: the record could not be written
        """
        if not isinstance(payload, dict):
            raise ValidationError()

        context = context or RequestContext()
        diagnostics = copy.deepcopy(payload)
        network_headers = extract_network_headers(context)
        client_ip = resolve_client_ip(context)
        user_agent = context.get('user-agent')
        submitted_at = utc_timestamp()

        # Serialize once up front so non-JSON values fail before any I/O.
        # NaN/Infinity and lone surrogates are not valid stored JSON.
        try:
            json.dumps(diagnostics, ensure_ascii=False, allow_nan=False).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise ValidationError(reason=str(e)) from e

        self.ensure_root()
        created: Dict[str, SubmissionRecord] = {}

        def taken(candidate: str) -> bool:
            # Existence check and create-if-absent in one step: a candidate is
            # reported as taken if a record exists or if another writer
            # published it between our check and our link.
            if self.exists(candidate):
                return True
            record = SubmissionRecord(
                reference_id=candidate,
                submitted_at=submitted_at,
                client_ip=client_ip,
                user_agent=user_agent,
                network_headers=network_headers,
                diagnostics=diagnostics,
            )
            if not self._create_exclusive(record):
                logger.warning("Lost reference ID race", reference_id=candidate)
                return True
            created['record'] = record
            return False

        with logger.log_operation('persist_diagnostics', client_ip=client_ip):
            reference_id = generate_unique_reference_id(taken, max_attempts=self.max_attempts, rng=self.rng)
        self._log_submission(created['record'])
        return reference_id

    def _create_exclusive(self, record: SubmissionRecord) -> bool:
        """
        Write a record under its final name only if that name is free.

        Returns False when a record with the same ID already exists.
        """
        target = self.path_for(record.reference_id)
        content = json.dumps(record.to_dict(), indent=2, ensure_ascii=False, allow_nan=False)
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{record.reference_id}.", suffix='.tmp', dir=str(self.root)
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.link(tmp_path, target)
            return True
        except FileExistsError:
            return False
        except OSError as e:
            logger.exception(f"Failed to write diagnostics record: {e}",
                             reference_id=record.reference_id)
            raise StorageError("Could not write diagnostics record") from e
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning(f"Could not remove temporary file: {e}", path=tmp_path)

    def _log_submission(self, record: SubmissionRecord):
        headers = record.network_headers
        fields = {
            'reference_id': record.reference_id,
            'client_ip': record.client_ip,
            'network_headers_captured': len(headers),
        }
        for field_name, header in (('cloudflare_ray', 'cf-ray'),
                                   ('country', 'cf-ipcountry'),
                                   ('forwarded_for', 'x-forwarded-for'),
                                   ('via', 'via')):
            if header in headers:
                fields[field_name] = headers[header]
        logger.info(f"Diagnostics saved: {record.reference_id}", **fields)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def retrieve(self, reference_id: Any) -> SubmissionRecord:
        """
        Load a record by reference ID.

        Raises:
            FormatError: ID is malformed (checked before touching storage)
            NotFoundError: no record with this ID
            StorageError: the record exists but could not be read
        """
        if not is_valid_reference_id(reference_id):
            raise FormatError(reference_id=str(reference_id)[:64])

        path = self.path_for(reference_id)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return SubmissionRecord.from_dict(data)
        except FileNotFoundError:
            raise NotFoundError(reference_id=reference_id)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.exception(f"Failed to read diagnostics record: {e}", reference_id=reference_id)
            raise StorageError("Could not read diagnostics record") from e


# =============================================================================
# MODULE SINGLETON
# =============================================================================

_store: Optional[DiagnosticsStore] = None
_store_lock = threading.Lock()


def get_store() -> DiagnosticsStore:
    """Get or create the store bound to the configured profiles directory."""
    global _store
    with _store_lock:
        if _store is None:
            _store = DiagnosticsStore(get_config().profiles_dir)
        return _store


def set_store(store: DiagnosticsStore):
    global _store
    with _store_lock:
        _store = store


def reset_store():
    """Drop the cached store (for testing)."""
    set_store(None)
