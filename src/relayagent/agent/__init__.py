"""Agent package: the iterative tool-calling loop and its building blocks.

The engine composes the session initializer (``messages``), the model invoker
(``model``), the tool-call dispatcher (``dispatcher``) and the catalog mutator
(``catalog``). ``factory`` wires them from settings.
"""

from .catalog import ToolCatalogMutator
from .dispatcher import ToolCallDispatcher
from .engine import IterationEngine
from .factory import build_engine, get_engine
from .messages import build_system_message, clean_final_response
from .model import ModelInvoker

__all__ = [
    "IterationEngine",
    "ModelInvoker",
    "ToolCallDispatcher",
    "ToolCatalogMutator",
    "build_engine",
    "build_system_message",
    "clean_final_response",
    "get_engine",
]
