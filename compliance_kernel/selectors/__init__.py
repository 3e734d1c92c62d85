"""Read-only selectors returning compliance DTOs."""

from compliance_kernel.selectors.base import BaseSelector
from compliance_kernel.selectors.compliance_selector import ComplianceSelector

__all__ = ["BaseSelector", "ComplianceSelector"]
