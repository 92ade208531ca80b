"""MCP tool registration."""

from mcp.server.fastmcp import FastMCP

from ..config import Config
from .mission import register_mission_tools


def register_all_tools(mcp: FastMCP, config: Config) -> None:
	"""Register all MCP tools."""
	register_mission_tools(mcp, config)
