"""Flush-only kernel write services."""

from compliance_kernel.services.base import BaseService
from compliance_kernel.services.record_writer import RecordWriter

__all__ = ["BaseService", "RecordWriter"]
