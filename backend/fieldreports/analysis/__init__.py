"""Report analysis pipeline components."""
from .assembler import EnrichmentAssembler, EnrichedReportContext
from .compositor import ReportCompositor
from .risk import calculate_risk_score, RiskScore

__all__ = [
    "EnrichmentAssembler",
    "EnrichedReportContext",
    "ReportCompositor",
    "calculate_risk_score",
    "RiskScore",
]
