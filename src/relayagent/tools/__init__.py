"""Tool capabilities handled by the engine: remote views, internal tools and summarizer wrappers."""

from .aggregator import InternalToolAggregator
from .base import RemoteTool, ToolCapability, ToolExecutor
from .memory import build_memory_tools
from .summarizer import SummarizerTool, create_summarizer_tools

__all__ = [
    "InternalToolAggregator",
    "RemoteTool",
    "SummarizerTool",
    "ToolCapability",
    "ToolExecutor",
    "build_memory_tools",
    "create_summarizer_tools",
]
