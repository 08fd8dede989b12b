"""Tool framework — import tool modules here to register them."""

# Import tool modules so their @registry.tool() decorators execute.
from lumina.tools import lookup_tools, record_tools, summary_tools  # noqa: F401
from lumina.tools.registry import registry

__all__ = ["registry"]
