"""
QuestOps: deployment orchestration and production monitoring for the Quest Tracker.

Drives a phased deployment pipeline with health checks, smoke tests and rollback,
and watches the deployed services with a polling health/alerting dashboard.
"""

__version__ = "0.1.0"
