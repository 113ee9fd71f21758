"""Assemblers that turn engine results into persisted records."""

from cipherwatch.services.audit import AuditLogger
from cipherwatch.services.baselines import BaselineResolver
from cipherwatch.services.insight import InsightAssembler
from cipherwatch.services.investigation import InvestigationAssembler

__all__ = ["AuditLogger", "BaselineResolver", "InsightAssembler", "InvestigationAssembler"]
