"""
LocationDirectory -- optional district/area validation for agreements.

The geographic hierarchy is owned by an external reference service; callers
load it once and hand it to ``ComplianceService``.  When no directory is
supplied, district and area are accepted as given.
"""

from __future__ import annotations

from typing import Iterable, Mapping

from compliance_kernel.exceptions import InvalidLocationError


class LocationDirectory:
    """Known districts and the areas inside each."""

    def __init__(self, districts: Mapping[str, Iterable[str]]):
        self._districts: dict[str, frozenset[str]] = {
            district: frozenset(areas) for district, areas in districts.items()
        }

    def __contains__(self, district: object) -> bool:
        return district in self._districts

    def areas(self, district: str) -> frozenset[str]:
        return self._districts.get(district, frozenset())

    def validate(self, district: str, area: str | None = None) -> None:
        """
        Raises:
            InvalidLocationError: Unknown district, or an area outside it.
        """
        if district not in self._districts:
            raise InvalidLocationError(district, area)
        if area is not None and area not in self._districts[district]:
            raise InvalidLocationError(district, area)
