"""
NPI registry lookup.

The adapter never raises to its caller: timeouts, connection errors, HTTP
errors, malformed payloads and zero-result responses all come back as None,
which the scorer treats as "no authoritative data available".
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from .env import DEFAULT_REGISTRY_URL, Settings
from .logger import get_logger
from .retry import (
    CircuitBreaker,
    CircuitOpenError,
    RetryError,
    exponential_backoff,
    should_retry_http_status,
)

logger = get_logger()


class RegistryServerError(Exception):
    """Retryable HTTP status returned by the registry."""

    def __init__(self, status_code: int):
        super().__init__(f"Registry returned HTTP {status_code}")
        self.status_code = status_code


@dataclass
class RegistryRecord:
    """First matching result of a registry query, flattened."""

    npi: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    credential: Optional[str] = None
    specialty: Optional[str] = None
    taxonomy_code: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None
    organization_name: Optional[str] = None
    enumeration_date: Optional[str] = None
    last_updated: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_result(cls, result: Dict[str, Any]) -> "RegistryRecord":
        basic = result.get("basic") or {}
        addresses = result.get("addresses") or []
        # Prefer the practice location over the mailing address
        address = next(
            (a for a in addresses if a.get("address_purpose") == "LOCATION"),
            addresses[0] if addresses else {},
        )
        taxonomies = result.get("taxonomies") or []
        taxonomy = next(
            (t for t in taxonomies if t.get("primary")),
            taxonomies[0] if taxonomies else {},
        )
        return cls(
            npi=str(result.get("number", "")),
            first_name=basic.get("first_name"),
            last_name=basic.get("last_name"),
            credential=basic.get("credential"),
            specialty=taxonomy.get("desc"),
            taxonomy_code=taxonomy.get("code"),
            address_line1=address.get("address_1"),
            address_line2=address.get("address_2") or None,
            city=address.get("city"),
            state=address.get("state"),
            zip_code=address.get("postal_code"),
            phone=address.get("telephone_number"),
            fax=address.get("fax_number"),
            organization_name=basic.get("organization_name"),
            enumeration_date=basic.get("enumeration_date"),
            last_updated=basic.get("last_updated"),
            raw=result,
        )


class NPIRegistryClient:
    """Looks up providers by NPI number against the NPPES registry API."""

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        version: str = "2.1",
        timeout: float = 10.0,
        max_retries: int = 1,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
        retry_delay: float = 0.5,
    ):
        self.base_url = base_url
        self.version = version
        self.timeout = timeout
        self.session = session or requests.Session()
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=5, recovery_timeout=60, expected_exception=RetryError
        )
        self._fetch = exponential_backoff(
            max_retries=max_retries,
            base_delay=retry_delay,
            exceptions=(
                requests.exceptions.Timeout,
                requests.exceptions.ConnectionError,
                RegistryServerError,
            ),
            on_retry=self._log_retry,
        )(self._get)

    @classmethod
    def from_settings(cls, settings: Settings) -> "NPIRegistryClient":
        return cls(
            base_url=settings.registry_url,
            version=settings.registry_version,
            timeout=settings.registry_timeout,
            max_retries=settings.registry_retries,
        )

    def _log_retry(self, attempt: int, error: Exception, delay: float):
        logger.debug("Retrying registry request", attempt=attempt, error=str(error), delay=delay)

    def _get(self, npi: str) -> Dict[str, Any]:
        resp = self.session.get(
            self.base_url,
            params={"version": self.version, "number": npi},
            timeout=self.timeout,
        )
        if should_retry_http_status(resp.status_code):
            raise RegistryServerError(resp.status_code)
        resp.raise_for_status()
        return resp.json()

    def lookup(self, npi: str) -> Optional[RegistryRecord]:
        """
        Fetch the registry record for an NPI.

        Returns:
            RegistryRecord on a hit, None on a miss or any failure
        """
        logger.record_registry_call()
        try:
            payload = self.breaker.call(self._fetch, npi)
        except CircuitOpenError as e:
            logger.record_registry_failure("CircuitOpen")
            logger.warning("Registry lookup skipped", npi=npi, reason=str(e))
            return None
        except RetryError as e:
            cause = e.__cause__
            error_type = type(cause).__name__ if cause is not None else "RetryError"
            logger.record_registry_failure(error_type)
            logger.warning("Registry unavailable", npi=npi, error=str(cause or e))
            return None
        except requests.exceptions.JSONDecodeError as e:
            logger.record_registry_failure("InvalidJSON")
            logger.warning("Registry returned invalid JSON", npi=npi, error=str(e))
            return None
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "HTTPError"
            logger.record_registry_failure(f"HTTPError_{status}")
            logger.warning("Registry request failed", npi=npi, status=status)
            return None
        except requests.exceptions.RequestException as e:
            logger.record_registry_failure("RequestException")
            logger.error("Registry request error", npi=npi, error=str(e))
            return None

        return self._parse(npi, payload)

    def _parse(self, npi: str, payload: Any) -> Optional[RegistryRecord]:
        if not isinstance(payload, dict):
            logger.record_registry_failure("UnexpectedPayload")
            logger.warning("Registry returned unexpected payload", npi=npi)
            return None

        results = payload.get("results") or []
        if not isinstance(results, list):
            logger.record_registry_failure("UnexpectedPayload")
            logger.warning("Registry results are not a list", npi=npi)
            return None
        if not payload.get("result_count") or not results:
            logger.record_registry_miss()
            logger.debug("NPI not found in registry", npi=npi)
            return None

        try:
            record = RegistryRecord.from_result(results[0])
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            logger.record_registry_failure("UnexpectedPayload")
            logger.warning("Registry result could not be parsed", npi=npi, error=str(e))
            return None

        logger.record_registry_hit()
        return record


class OfflineRegistry:
    """Registry stand-in that never finds anything; used with --offline."""

    def lookup(self, npi: str) -> Optional[RegistryRecord]:
        return None
