"""
Tool layer: static registry, handler map and the executor that binds them.
"""

from banb.tools.registry import TOOL_REGISTRY, Tool, ToolRegistry, list_tools  # noqa: F401
from banb.tools.executor import ToolExecutionContext, ToolExecutor, ToolResult  # noqa: F401
