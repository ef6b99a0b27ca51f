"""
Pytest configuration and shared fixtures.
"""

import os

# Keep test runs from writing log files; must be set before provcheck imports.
os.environ.setdefault("PROVCHECK_LOG_TO_FILE", "false")

import pytest

from provcheck.models import Provider
from provcheck.pipeline import ValidationPipeline
from provcheck.registry import RegistryRecord
from provcheck.review import ReviewQueue
from provcheck.scoring import ConfidenceScorer
from provcheck.storage import MemoryStore


class FakeRegistry:
    """Registry double: NPIs in `known` are hits, everything else misses."""

    def __init__(self, known=(), fail_for=()):
        self.known = set(known)
        self.fail_for = set(fail_for)
        self.calls = []

    def lookup(self, npi):
        self.calls.append(npi)
        if npi in self.fail_for:
            raise RuntimeError(f"registry exploded for {npi}")
        if npi in self.known:
            return RegistryRecord(npi=npi, first_name="Registry", last_name="Hit")
        return None


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clean_provider() -> Provider:
    """Provider whose every field passes format checks."""
    return Provider(
        npi="1234567890",
        first_name="Mary",
        last_name="Johnson",
        credential="MD",
        specialty="Cardiology",
        phone="212-555-1234",
        fax="212-555-9876",
        email="mary.johnson@healthpartners.com",
        address_line1="123 Main St",
        city="Boston",
        state="MA",
        zip_code="02108",
        organization_name="Johnson Health Partners",
    )


@pytest.fixture
def messy_provider() -> Provider:
    """Provider with a fake phone, no email and a placeholder zip."""
    return Provider(
        npi="1999999999",
        first_name="James",
        last_name="Smith",
        phone="555-000-0000",
        email=None,
        address_line1="9 Oak Ave",
        city="Austin",
        state="TX",
        zip_code="00000",
    )


@pytest.fixture
def registry(clean_provider):
    return FakeRegistry(known={clean_provider.npi})


@pytest.fixture
def scorer():
    """Deterministic scorer: generic fields without a registry hit score 70."""
    return ConfidenceScorer(fallback=70.0)


@pytest.fixture
def queue(store):
    return ReviewQueue(store)


@pytest.fixture
def pipeline(store, registry, scorer, queue):
    return ValidationPipeline(store, registry, scorer=scorer, queue=queue)


@pytest.fixture
def sample_csv() -> str:
    return (
        "NPI,First Name,Last Name,Credential,Specialty,Phone,Email,Address,City,State,ZIP\n"
        "1234567890,Mary,Johnson,MD,Cardiology,212-555-1234,mary@example.com,123 Main St,Boston,MA,02108\n"
        "1098765432,John,Brown,DO,Pediatrics,5551234567,not-an-email,9 Oak Ave,Austin,TX,00000\n"
    )
