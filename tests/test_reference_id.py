"""
Tests for Reference ID Generation
=================================
Format of generated IDs and the bounded collision retry.
"""

import random
from unittest.mock import MagicMock

import pytest

from config_logging import ExhaustedRetriesError, StorageError
from diagnostics_store.models import (
    REFERENCE_ALPHABET, GENERATED_ID_PATTERN, is_valid_reference_id
)
from diagnostics_store.reference_id import (
    MAX_GENERATION_ATTEMPTS, generate_reference_id, generate_unique_reference_id
)


class TestAlphabet:
    """Tests for the reference ID alphabet."""

    def test_excludes_ambiguous_characters(self):
        for ch in '0O1IL':
            assert ch not in REFERENCE_ALPHABET

    def test_uppercase_alphanumeric_without_duplicates(self):
        assert len(set(REFERENCE_ALPHABET)) == len(REFERENCE_ALPHABET)
        assert all(ch.isupper() or ch.isdigit() for ch in REFERENCE_ALPHABET)


class TestGenerateReferenceId:
    """Tests for generate_reference_id()."""

    def test_format(self):
        for _ in range(500):
            reference_id = generate_reference_id()
            assert GENERATED_ID_PATTERN.match(reference_id), reference_id
            assert is_valid_reference_id(reference_id)

    def test_three_groups_of_five(self):
        groups = generate_reference_id().split('-')
        assert [len(g) for g in groups] == [5, 5, 5]

    def test_seeded_rng_is_reproducible(self):
        assert generate_reference_id(random.Random(7)) == generate_reference_id(random.Random(7))

    def test_ids_vary(self):
        ids = {generate_reference_id() for _ in range(1000)}
        assert len(ids) == 1000


class TestGenerateUniqueReferenceId:
    """Tests for generate_unique_reference_id()."""

    def test_returns_first_unused_candidate(self):
        exists = MagicMock(return_value=False)
        reference_id = generate_unique_reference_id(exists)
        exists.assert_called_once_with(reference_id)

    def test_retries_past_collisions(self):
        exists = MagicMock(side_effect=[True, True, False])
        reference_id = generate_unique_reference_id(exists)
        assert exists.call_count == 3
        assert exists.call_args[0][0] == reference_id

    def test_skips_existing_ids(self):
        rng = random.Random(99)
        first = generate_reference_id(random.Random(99))
        reference_id = generate_unique_reference_id(lambda c: c == first, rng=rng)
        assert reference_id != first

    def test_exhausts_after_ceiling(self):
        exists = MagicMock(return_value=True)
        with pytest.raises(ExhaustedRetriesError) as excinfo:
            generate_unique_reference_id(exists)
        assert exists.call_count == MAX_GENERATION_ATTEMPTS == 10
        assert excinfo.value.attempts == 10
        assert excinfo.value.status_code == 500

    def test_exhaustion_is_a_storage_error(self):
        with pytest.raises(StorageError):
            generate_unique_reference_id(lambda c: True, max_attempts=3)

    def test_custom_ceiling(self):
        exists = MagicMock(return_value=True)
        with pytest.raises(ExhaustedRetriesError):
            generate_unique_reference_id(exists, max_attempts=4)
        assert exists.call_count == 4
