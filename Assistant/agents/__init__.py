"""
Pipeline agents for the orchestration service
"""
from .classifier import PreflightClassifier
from .executor import PlanStepExecutor
from .orchestrator import AgentOrchestrator
from .planner import Planner
from .quick_shot import QuickShotResponder
from .reasoner import LLMReasoner
from .router import ActionRouter
from .synthesizer import ResponseSynthesizer

__all__ = [
    "PreflightClassifier",
    "PlanStepExecutor",
    "AgentOrchestrator",
    "Planner",
    "QuickShotResponder",
    "LLMReasoner",
    "ActionRouter",
    "ResponseSynthesizer",
]
