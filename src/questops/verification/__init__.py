"""
Post-deployment verification.

A one-shot suite that checks a deployed frontend and API end to end.
"""

from questops.verification.checker import HealthChecker, VerificationReport

__all__ = ["HealthChecker", "VerificationReport"]
