"""
compliance_services -- transaction-owning entry points.

``ComplianceService`` covers agreements, schedules, payments and the
compliance snapshot; ``RecycleBinService`` covers soft delete, restore and
purge.  Both accept an injectable ``Clock`` and ``ComplianceConfig``, and
can share a ``StatsFeed`` so subscribers see stats after every mutation
regardless of which service made it.
"""

from compliance_services.compliance_service import ComplianceService, new_agreement_id
from compliance_services.locations import LocationDirectory
from compliance_services.recycle_bin_service import RecycleBinService
from compliance_services.stats_feed import StatsFeed, StatsListener

__all__ = [
    "ComplianceService",
    "LocationDirectory",
    "RecycleBinService",
    "StatsFeed",
    "StatsListener",
    "new_agreement_id",
]
