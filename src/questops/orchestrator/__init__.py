"""
Deployment orchestration.

Runs the phased deployment pipeline for one environment, rolls back on failure
and persists a record of every run.
"""

from questops.orchestrator.phases import PHASE_HANDLERS, PIPELINE, Phase
from questops.orchestrator.pipeline import DeploymentOrchestrator
from questops.orchestrator.run import DeploymentRun

__all__ = ["DeploymentOrchestrator", "DeploymentRun", "PHASE_HANDLERS", "PIPELINE", "Phase"]
