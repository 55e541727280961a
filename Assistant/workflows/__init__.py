"""
Workflow patterns for the agent orchestration service
"""
from .sequential import create_sequential_pipeline
from .parallel import PlanPipeline, create_plan_pipeline

__all__ = [
    "create_sequential_pipeline",
    "PlanPipeline",
    "create_plan_pipeline",
]
