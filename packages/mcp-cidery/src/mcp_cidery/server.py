"""
FastMCP server definition for cidery operations.
"""

from fastmcp import FastMCP

from mcp_cidery.config import CideryConfig
from mcp_cidery.state import AppState
from mcp_cidery.tools import register_tools


def create_server(config: CideryConfig | None = None, state: AppState | None = None) -> FastMCP:
    """
    Build the MCP server with its own application state.

    Args:
        config: Server configuration; defaults with an empty store
        state: Prebuilt state, mainly for tests
    """
    config = config or CideryConfig()
    state = state or AppState.from_config(config)

    mcp = FastMCP(
        "mcp-cidery",
        instructions=(
            "Cidery batch, packaging and inventory metrics: extraction rates, "
            "packaging loss, consolidated fruit inventory, fermentation "
            "progress, excise tax and apple variety maintenance"
        ),
    )
    register_tools(mcp, state)
    return mcp
