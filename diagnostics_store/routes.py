"""
Diagnostics Store Flask Routes
==============================
API endpoints for submitting and looking up diagnostics.

Endpoints:
- POST /api/diagnostics       - Store a diagnostics payload, return its reference ID
- GET  /api/diagnostics/<id>  - Return the stored record (support lookup)
- GET  /api/health            - Health check
"""

import time
from functools import wraps

from flask import Blueprint, request, jsonify, g
from werkzeug.exceptions import HTTPException

from config_logging import (
    get_logger, VERSION,
    NetStatsError, StorageError, ValidationError,
)

from .models import RequestContext
from .storage import get_store

logger = get_logger('diagnostics_store')

ds_blueprint = Blueprint('diagnostics_store', __name__, url_prefix='/api')


# =============================================================================
# STANDARDIZED ERROR HANDLING DECORATOR
# =============================================================================

def handle_ds_errors(failure_label: str):
    """
    Decorator translating store errors into API responses.

    Caller errors (bad payload, bad ID, unknown ID) are answered with their own
    message. Internal errors are logged and answered with failure_label plus a
    short message; exception text from the OS never reaches the client.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            start_time = time.time()
            try:
                result = f(*args, **kwargs)

                elapsed = time.time() - start_time
                if elapsed > 5.0:
                    logger.warning(f"Slow diagnostics API call: {f.__name__} took {elapsed:.1f}s")

                return result

            except StorageError as e:
                logger.error(f"{failure_label}: {e.code}", endpoint=f.__name__, **e.details)
                return jsonify({
                    'error': failure_label,
                    'message': e.message,
                    'correlation_id': getattr(g, 'correlation_id', 'unknown')
                }), e.status_code
            except NetStatsError as e:
                logger.info(f"Rejected request in {f.__name__}: {e.message}", code=e.code)
                return jsonify(e.to_dict()), e.status_code
            except HTTPException:
                raise
            except Exception as e:
                logger.exception(f"Unexpected error in {f.__name__}: {e}")
                return jsonify({
                    'error': failure_label,
                    'message': 'An internal error occurred',
                    'correlation_id': getattr(g, 'correlation_id', 'unknown')
                }), 500

        return decorated
    return decorator


# =============================================================================
# ROUTES
# =============================================================================

@ds_blueprint.route('/diagnostics', methods=['POST'])
@handle_ds_errors('Failed to save diagnostics')
def submit_diagnostics():
    """Store the posted diagnostics object and return its reference ID."""
    # silent=True: malformed JSON or a non-JSON content type yields None
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError()

    reference_id = get_store().submit(payload, RequestContext.from_flask_request(request))

    return jsonify({
        'success': True,
        'referenceId': reference_id,
        'message': 'Diagnostics submitted successfully'
    })


@ds_blueprint.route('/diagnostics/<reference_id>', methods=['GET'])
@handle_ds_errors('Failed to retrieve diagnostics')
def get_diagnostics(reference_id):
    """Return a stored diagnostics record by reference ID."""
    record = get_store().retrieve(reference_id)
    return jsonify(record.to_dict())


@ds_blueprint.route('/health', methods=['GET'])
def health_check():
    store = get_store()
    return jsonify({
        'status': 'healthy',
        'version': VERSION,
        'profiles_dir_present': store.root.is_dir()
    })
