"""
Action router
Maps a classification decision to the executor that will answer it
"""
import logging
from types import MappingProxyType
from typing import Mapping

from ..core import RoutingConfigurationError
from ..models import ActionMode, ClassificationDecision, ToolIdentity
from ..tools.base import ActionExecutor

logger = logging.getLogger(__name__)


class ActionRouter:
    """
    Pure lookup from decision to executor.

    The tool map is frozen at construction. DIRECT_TOOL uses only the first
    selected tool; PLANNER always goes to the plan pipeline.
    """

    def __init__(self, direct_executors: Mapping[ToolIdentity, ActionExecutor], plan_executor: ActionExecutor):
        self._direct = MappingProxyType(dict(direct_executors))
        self._plan = plan_executor

    def route(self, decision: ClassificationDecision) -> ActionExecutor:
        if decision.sufficient or decision.action_mode is None:
            raise RoutingConfigurationError("A sufficient decision has no executor to route to")

        if decision.action_mode is ActionMode.PLANNER:
            logger.info("Routing to plan pipeline")
            return self._plan

        if not self._direct:
            raise RoutingConfigurationError("No direct tool executors are registered")

        tool = decision.selected_tools[0]
        if len(decision.selected_tools) > 1:
            ignored = [t.value for t in decision.selected_tools[1:]]
            logger.info(f"DIRECT_TOOL uses {tool.value} only, ignoring {ignored}")

        executor = self._direct.get(tool)
        if executor is None:
            raise RoutingConfigurationError(f"No executor registered for tool {tool.value}")

        logger.info(f"Routing to {tool.value} ({executor.name})")
        return executor
