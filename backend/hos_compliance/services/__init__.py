"""
HOS Compliance Services Package.

This package contains all business logic services for Hours of Service
compliance calculation and violation tracking.

Services:
- HOSCalculatorService: Compliance snapshots for a driver
- WindowAggregatorService: Rolling drive, on-duty, shift and cycle totals
- ViolationDetectorService: Limit checks and break/rest projections
- RuleSetRegistry: Jurisdictional limit tables
- ViolationStore: Detected violations and their resolution
"""

from .hos_calculator import ComplianceSnapshot, HOSCalculatorService, WindowStatus
from .rule_set_registry import RuleSet, RuleSetRegistry, get_rule_set_registry
from .violation_detector import Severity, Violation, ViolationDetectorService, ViolationKind
from .violation_store import InMemoryViolationStore, ViolationStore, get_violation_store
from .window_aggregator import WindowAggregatorService, WindowTotals, WindowUsage

__all__ = [
    'ComplianceSnapshot',
    'HOSCalculatorService',
    'InMemoryViolationStore',
    'RuleSet',
    'RuleSetRegistry',
    'Severity',
    'Violation',
    'ViolationDetectorService',
    'ViolationKind',
    'ViolationStore',
    'WindowAggregatorService',
    'WindowStatus',
    'WindowTotals',
    'WindowUsage',
    'get_rule_set_registry',
    'get_violation_store',
]
