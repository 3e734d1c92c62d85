"""ORM models for the compliance kernel."""

from compliance_kernel.models.compliance import AgreementModel, InstallmentModel

__all__ = [
    "AgreementModel",
    "InstallmentModel",
]
