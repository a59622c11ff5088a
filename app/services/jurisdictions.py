"""Registry of jurisdiction-specific collaborators."""

from collections.abc import Mapping
from dataclasses import dataclass

from app.core.exceptions import UnsupportedJurisdictionException
from app.domain.appointment import SUPPORTED_COUNTRIES, validate_country
from app.services.ports import CountryLedger, EventBus, ScheduleDirectory


@dataclass(frozen=True)
class CountryBundle:
    """Everything a country processor needs for one jurisdiction."""

    country_iso: str
    ledger: CountryLedger
    schedules: ScheduleDirectory
    event_bus: EventBus


class JurisdictionRegistry:
    """Jurisdiction code -> collaborator bundle, validated once at startup."""

    def __init__(self, bundles: Mapping[str, CountryBundle]):
        """
        Build the registry.

        Raises:
            UnsupportedJurisdictionException: If a code is outside the supported
                set or a bundle is registered under another country's code
        """
        for code, bundle in bundles.items():
            validate_country(code)
            if bundle.country_iso != code:
                raise UnsupportedJurisdictionException(
                    f"Bundle for {bundle.country_iso} registered under {code}"
                )
        self._bundles = dict(bundles)

    def get(self, country_iso: str) -> CountryBundle:
        """
        Get the bundle for a jurisdiction.

        Raises:
            UnsupportedJurisdictionException: If the code is unsupported or not configured
        """
        validate_country(country_iso)
        try:
            return self._bundles[country_iso]
        except KeyError:
            raise UnsupportedJurisdictionException(
                f"Jurisdiction {country_iso} is supported but not configured"
            ) from None

    @property
    def countries(self) -> list[str]:
        """Configured jurisdiction codes."""
        return sorted(self._bundles)

    @property
    def missing(self) -> list[str]:
        """Supported jurisdictions with no configured bundle."""
        return sorted(SUPPORTED_COUNTRIES - self._bundles.keys())

    def __contains__(self, country_iso: object) -> bool:
        return country_iso in self._bundles

    def __len__(self) -> int:
        return len(self._bundles)
