"""
Shared fixtures for the NetStats test suite.

Run with: python -m pytest tests -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config_logging import AppConfig, reset_config, set_config
from diagnostics_store import DiagnosticsStore, reset_store


@pytest.fixture
def test_config(tmp_path) -> AppConfig:
    """Configuration writing into a temporary profiles directory."""
    config = AppConfig(
        profiles_dir=tmp_path / 'profiles',
        log_dir=tmp_path / 'logs',
        log_to_file=False,
        log_format='text',
    )
    set_config(config)
    yield config
    reset_config()
    reset_store()


@pytest.fixture
def store(test_config) -> DiagnosticsStore:
    return DiagnosticsStore(test_config.profiles_dir)


@pytest.fixture
def app(test_config, store):
    from app import create_app
    application = create_app(test_config, store)
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sample_payload() -> dict:
    """Shape of what the browser collector posts."""
    return {
        'browser': {'name': 'Firefox', 'version': '131.0', 'language': 'en-GB'},
        'connection': {'effectiveType': '4g', 'downlink': 9.6, 'rtt': 50, 'saveData': False},
        'timing': {'dns': 12.5, 'tcp': 30, 'ttfb': 110.25},
        'resources': [
            {'name': 'https://cdn.example.com/app.js', 'duration': 84.1, 'transferSize': 20480},
        ],
        'webgl': None,
        'notes': 'café – unicode survives',
    }


def record_files(directory: Path) -> list:
    """Persisted record files (temporary files excluded)."""
    if not directory.exists():
        return []
    return sorted(p.name for p in directory.glob('*.json'))
