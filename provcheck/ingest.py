"""
Getting providers into the store: CSV import, synthetic generation and
simulated PDF extraction. Everything enters with status pending and
confidence 0; scoring happens later in the pipeline.
"""

import csv
import io
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .logger import get_logger
from .models import Provider, ProviderStatus
from .normalize import blank_to_none, normalize_header
from .schema import validate_provider_record
from .storage import Store

logger = get_logger()

# Provider attribute -> accepted CSV headers (lower-cased), first match wins
HEADER_ALIASES: Dict[str, Tuple[str, ...]] = {
    "npi": ("npi",),
    "first_name": ("first name", "firstname", "first_name"),
    "last_name": ("last name", "lastname", "last_name"),
    "credential": ("credential", "credentials"),
    "specialty": ("specialty",),
    "phone": ("phone", "telephone"),
    "fax": ("fax",),
    "email": ("email",),
    "address_line1": ("address", "address line 1", "address1"),
    "address_line2": ("address line 2", "address2"),
    "city": ("city",),
    "state": ("state",),
    "zip_code": ("zip", "zipcode", "zip code"),
    "organization_name": ("organization", "organization name"),
    "taxonomy_code": ("taxonomy", "taxonomy code"),
    "license_number": ("license", "license number"),
    "license_state": ("license state",),
}

MIN_ROW_VALUES = 3

FIRST_NAMES = ["James", "Mary", "John", "Patricia", "Robert", "Jennifer", "Michael", "Linda", "William", "Elizabeth",
               "David", "Barbara", "Richard", "Susan", "Joseph", "Jessica", "Thomas", "Sarah", "Charles", "Karen"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Rodriguez", "Martinez",
              "Hernandez", "Lopez", "Gonzalez", "Wilson", "Anderson", "Thomas", "Taylor", "Moore", "Jackson", "Martin"]
CREDENTIALS = ["MD", "DO", "NP", "PA", "DPM", "DC", "PhD", "DMD", "DDS", "OD"]
SPECIALTIES = ["Family Medicine", "Internal Medicine", "Cardiology", "Orthopedics", "Pediatrics", "Psychiatry",
               "Dermatology", "Neurology", "Oncology", "Emergency Medicine", "Radiology", "Anesthesiology",
               "Gastroenterology", "Pulmonology", "Nephrology"]
CITIES = {
    "CA": ["Los Angeles", "San Francisco", "San Diego", "Sacramento", "San Jose"],
    "TX": ["Houston", "Dallas", "Austin", "San Antonio", "Fort Worth"],
    "FL": ["Miami", "Orlando", "Tampa", "Jacksonville", "Fort Lauderdale"],
    "NY": ["New York", "Buffalo", "Rochester", "Albany", "Syracuse"],
    "PA": ["Philadelphia", "Pittsburgh", "Harrisburg", "Allentown", "Erie"],
    "IL": ["Chicago", "Aurora", "Naperville", "Rockford", "Springfield"],
    "OH": ["Columbus", "Cleveland", "Cincinnati", "Toledo", "Akron"],
    "GA": ["Atlanta", "Augusta", "Savannah", "Columbus", "Macon"],
    "NC": ["Charlotte", "Raleigh", "Greensboro", "Durham", "Winston-Salem"],
    "MI": ["Detroit", "Grand Rapids", "Warren", "Sterling Heights", "Ann Arbor"],
}
STREET_NAMES = ["Main St", "Oak Ave", "Park Blvd", "Cedar Ln", "Maple Dr", "Washington St", "Lincoln Ave",
                "Jefferson Blvd", "Madison St", "Medical Center Dr"]
ORGANIZATIONS = ["Medical Group", "Health Partners", "Clinic", "Medical Center", "Healthcare Associates",
                 "Family Practice", "Specialty Care"]


@dataclass
class ImportResult:
    created: List[Provider] = field(default_factory=list)
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.created)


def generate_npi(rng: random.Random) -> str:
    return "1" + "".join(str(rng.randrange(10)) for _ in range(9))


def generate_phone(rng: random.Random) -> str:
    return f"{rng.randint(100, 999)}-{rng.randint(100, 999)}-{rng.randint(1000, 9999)}"


def generate_zip(rng: random.Random) -> str:
    return str(rng.randint(10000, 99999))


def _row_value(row: Dict[str, str], attr: str) -> Optional[str]:
    for header in HEADER_ALIASES[attr]:
        value = blank_to_none(row.get(header))
        if value is not None:
            return value
    return None


def parse_provider_csv(text: str, rng: Optional[random.Random] = None) -> ImportResult:
    """
    Parse CSV text into pending providers.

    Headers are matched case-insensitively against HEADER_ALIASES. A missing
    NPI gets a generated one so the row can still be scored; missing names
    become "Unknown" / "Provider". Rows with fewer than three values, or that
    fail the record checks, are skipped and reported in ImportResult.errors.

    Raises:
        ValueError: If there is no header row plus at least one data row
    """
    rng = rng or random.Random()
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("Invalid CSV format")

    reader = csv.reader(io.StringIO("\n".join(lines)))
    headers = [normalize_header(h) for h in next(reader)]
    result = ImportResult()

    for line_no, values in enumerate(reader, start=2):
        if sum(1 for v in values if v.strip()) < MIN_ROW_VALUES:
            result.skipped += 1
            continue

        row = {h: v for h, v in zip(headers, values)}
        data = {attr: _row_value(row, attr) for attr in HEADER_ALIASES}
        data["npi"] = data["npi"] or generate_npi(rng)
        data["first_name"] = data["first_name"] or "Unknown"
        data["last_name"] = data["last_name"] or "Provider"

        errors = validate_provider_record(data)
        if errors:
            result.skipped += 1
            result.errors.extend(f"line {line_no}: {e}" for e in errors)
            continue

        result.created.append(Provider(**data))

    return result


def import_csv(store: Store, text: str, rng: Optional[random.Random] = None) -> ImportResult:
    result = parse_provider_csv(text, rng=rng)
    result.created = store.bulk_create_providers(result.created)
    for error in result.errors:
        logger.warning("Skipped CSV row", error=error)
    logger.info(
        f"CSV imported: {result.count} created, {result.skipped} skipped",
    )
    return result


def _introduce_data_issues(provider: Provider, rng: random.Random) -> Provider:
    """Seed realistic defects so a synthetic batch exercises every branch."""
    roll = rng.random()

    if roll < 0.15:
        provider.phone = provider.phone.replace("-", "") if provider.phone else None
    elif roll < 0.25:
        provider.phone = "555-000-0000"

    if 0.7 < roll < 0.8:
        provider.address_line1 = provider.address_line1.upper() if provider.address_line1 else None
    if 0.8 < roll < 0.85:
        provider.email = None
    if 0.85 < roll < 0.9:
        provider.zip_code = "00000"
    if 0.9 < roll < 0.95:
        provider.specialty = None

    return provider


def generate_synthetic_provider(rng: Optional[random.Random] = None) -> Provider:
    rng = rng or random.Random()
    state = rng.choice(sorted(CITIES))
    first_name = rng.choice(FIRST_NAMES)
    last_name = rng.choice(LAST_NAMES)
    domain = rng.choice(ORGANIZATIONS).lower().replace(" ", "")

    provider = Provider(
        npi=generate_npi(rng),
        first_name=first_name,
        last_name=last_name,
        credential=rng.choice(CREDENTIALS),
        specialty=rng.choice(SPECIALTIES),
        phone=generate_phone(rng),
        fax=generate_phone(rng) if rng.random() > 0.3 else None,
        email=f"{first_name.lower()}.{last_name.lower()}@{domain}.com",
        address_line1=f"{rng.randint(1000, 9999)} {rng.choice(STREET_NAMES)}",
        address_line2=f"Suite {rng.randint(100, 599)}" if rng.random() > 0.7 else None,
        city=rng.choice(CITIES[state]),
        state=state,
        zip_code=generate_zip(rng),
        organization_name=f"{last_name} {rng.choice(ORGANIZATIONS)}",
        taxonomy_code=f"207{chr(65 + rng.randrange(26))}00000X",
        license_number=f"{state}{rng.randint(100000, 999999)}",
        license_state=state,
        status=ProviderStatus.PENDING,
    )
    return _introduce_data_issues(provider, rng)


def generate_synthetic_data(
    store: Store, count: int = 200, rng: Optional[random.Random] = None
) -> List[Provider]:
    """Replace every provider and review item with a fresh synthetic batch."""
    rng = rng or random.Random()
    store.clear_providers()
    created = store.bulk_create_providers(
        generate_synthetic_provider(rng) for _ in range(count)
    )
    logger.info(f"Generated {len(created)} synthetic providers")
    return created


def simulate_pdf_extraction(
    store: Store, content: bytes, rng: Optional[random.Random] = None
) -> List[Provider]:
    """
    Stand-in for OCR: the document is not read, 1-5 synthetic providers are
    created in its place.
    """
    if not content:
        raise ValueError("No file uploaded")
    rng = rng or random.Random()
    extracted = [generate_synthetic_provider(rng) for _ in range(rng.randint(1, 5))]
    created = store.bulk_create_providers(extracted)
    logger.info(
        f"PDF processed (simulated extraction): {len(created)} providers",
        size_bytes=len(content),
    )
    return created
