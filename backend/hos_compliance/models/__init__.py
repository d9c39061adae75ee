"""
HOS Compliance models package.

This package contains the persistence models for HOS compliance tracking.
"""

from .compliance_violation import ComplianceViolation

__all__ = ['ComplianceViolation']
