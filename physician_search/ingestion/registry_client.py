"""
Client for the NPPES NPI provider registry.

The registry only supports exact, ANDed parameter search. This module
issues those lookups, converts the JSON payload into CandidateProvider
records and filters out inactive providers.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from physician_search.exceptions import RegistryError
from physician_search.models import CandidateProvider, ProviderAddress, ProviderTaxonomy

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://npiregistry.cms.hhs.gov/api/"

RETIRED_MARKER = "retired"


class RegistryClient:
    """
    Looks up providers in the NPPES registry.

    ``lookup`` never raises: upstream failures are logged and yield an
    empty result so the cascade can move on to its next stage.
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize registry client.

        Args:
            config: Registry section of the search configuration
        """
        self.config = config or {}
        self.base_url = self.config.get("base_url", _BASE_URL)
        self.version = str(self.config.get("version", "2.1"))
        self.timeout = self.config.get("timeout_seconds", 10)
        self.default_limit = self.config.get("limit", 50)

        logger.info("Initialized RegistryClient")

    def lookup(self, first_name: Optional[str] = None, last_name: Optional[str] = None,
               specialty: Optional[str] = None, city: Optional[str] = None,
               state: Optional[str] = None, limit: Optional[int] = None) -> List[CandidateProvider]:
        """
        Search the registry; parameters left as None are not sent.

        Args:
            first_name: Provider first name
            last_name: Provider last name
            specialty: Taxonomy description
            city: Practice city
            state: 2-letter practice state
            limit: Maximum number of records

        Returns:
            Candidate providers, empty on any upstream failure
        """
        params = {
            "version": self.version,
            "first_name": first_name,
            "last_name": last_name,
            "taxonomy_description": specialty,
            "city": city,
            "state": state,
            "limit": limit or self.default_limit,
        }
        params = {k: v for k, v in params.items() if v not in (None, "")}

        try:
            payload = self._fetch(params)
        except RegistryError as e:
            logger.warning(f"Registry lookup failed for {params}: {e}")
            return []

        candidates = parse_registry_results(payload)
        logger.debug(f"Registry returned {len(candidates)} candidates for {params}")
        return candidates

    def _fetch(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = _SESSION.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise RegistryError(f"request failed: {e}") from e
        except ValueError as e:
            raise RegistryError(f"invalid JSON body: {e}") from e

        if not isinstance(payload, dict):
            raise RegistryError("unexpected payload type")

        errors = payload.get("Errors")
        if errors:
            descriptions = [err.get("description", str(err)) if isinstance(err, dict) else str(err)
                            for err in errors]
            raise RegistryError("; ".join(descriptions))

        return payload


def parse_registry_results(payload: Dict[str, Any]) -> List[CandidateProvider]:
    """
    Convert a registry JSON payload into candidate providers.

    Entries without an NPI number are skipped.

    Args:
        payload: Decoded registry response

    Returns:
        List of CandidateProvider in registry order
    """
    candidates = []
    for entry in payload.get("results") or []:
        if not isinstance(entry, dict) or not entry.get("number"):
            logger.debug("Skipping registry entry without an NPI number")
            continue

        basic = entry.get("basic") or {}
        addresses = [
            ProviderAddress(
                purpose=_text(address.get("address_purpose")),
                address_1=_text(address.get("address_1")),
                address_2=_text(address.get("address_2")),
                city=_text(address.get("city")),
                state=_text(address.get("state")),
                postal_code=_text(address.get("postal_code")),
                telephone=_text(address.get("telephone_number")),
                fax=_text(address.get("fax_number")),
            )
            for address in entry.get("addresses") or []
            if isinstance(address, dict)
        ]
        taxonomies = [
            ProviderTaxonomy(
                description=_text(taxonomy.get("desc")),
                primary=bool(taxonomy.get("primary")),
                code=_text(taxonomy.get("code")),
            )
            for taxonomy in entry.get("taxonomies") or []
            if isinstance(taxonomy, dict)
        ]

        candidates.append(CandidateProvider(
            npi=str(entry["number"]),
            first_name=_text(basic.get("first_name")),
            last_name=_text(basic.get("last_name")),
            middle_name=_text(basic.get("middle_name")),
            credential=_text(basic.get("credential")),
            status=_text(basic.get("status")),
            enumeration_date=basic.get("enumeration_date"),
            addresses=addresses,
            taxonomies=taxonomies,
        ))

    return candidates


def filter_active(candidates: List[CandidateProvider]) -> List[CandidateProvider]:
    """
    Drop providers that are retired or cannot be contacted at a practice.

    A record is removed when its status, a taxonomy description or its name
    mentions "retired", when it has no practice-location address with a
    street line, or when it has no phone or fax number at all.

    Args:
        candidates: Registry candidates

    Returns:
        Active candidates in their original order
    """
    active = []
    for candidate in candidates:
        text = " ".join(
            [candidate.status, candidate.first_name, candidate.last_name, candidate.credential]
            + [t.description for t in candidate.taxonomies]
        ).lower()
        if RETIRED_MARKER in text:
            continue
        if candidate.practice_address is None:
            continue
        if not any(address.has_contact for address in candidate.addresses):
            continue
        active.append(candidate)

    if len(active) < len(candidates):
        logger.debug(f"Filtered {len(candidates) - len(active)} inactive candidates")
    return active


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""
