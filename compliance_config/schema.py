"""
Compliance Configuration Schema.

Defines the tunable settings of the compliance engine: expiry and retention
windows, the rounding remainder policy, the soft-delete cascade scope and
the installment id format.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Self

from compliance_kernel.domain.values import RemainderPolicy
from compliance_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass(frozen=True)
class ComplianceConfig:
    """Configuration schema for the compliance engine."""

    # Days before end date at which an agreement becomes "Expiring Soon"
    expiry_window_days: int = 30

    # Days a soft-deleted record stays in the recycle bin
    retention_days: int = 30

    # What happens to fee % periods_per_year
    remainder_policy: RemainderPolicy = RemainderPolicy.ACCEPT_LOSS

    # Agreement soft delete also bins Paid installments
    cascade_paid_installments: bool = True

    # Installment id format: <prefix>-<agreement id>-<zero padded sequence>
    installment_id_prefix: str = "TX"
    sequence_width: int = 3

    def __post_init__(self):
        if not isinstance(self.remainder_policy, RemainderPolicy):
            try:
                object.__setattr__(
                    self, "remainder_policy", RemainderPolicy(self.remainder_policy)
                )
            except ValueError:
                raise ValueError(
                    f"Unknown remainder_policy: {self.remainder_policy!r}"
                ) from None
        if self.expiry_window_days < 0:
            raise ValueError("expiry_window_days cannot be negative")
        if self.retention_days < 0:
            raise ValueError("retention_days cannot be negative")
        if not self.installment_id_prefix:
            raise ValueError("installment_id_prefix must not be empty")
        if self.sequence_width <= 0:
            raise ValueError("sequence_width must be positive")

        logger.info(
            "compliance_config_initialized",
            extra={
                "expiry_window_days": self.expiry_window_days,
                "retention_days": self.retention_days,
                "remainder_policy": self.remainder_policy.value,
                "cascade_paid_installments": self.cascade_paid_installments,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the standard windows and rounding."""
        return cls()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["remainder_policy"] = self.remainder_policy.value
        return data
