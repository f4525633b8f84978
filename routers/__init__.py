"""Routers package for Builder Central API endpoints"""
from . import activities, dashboard, tool_interactions, tools, users

__all__ = [
	"activities",
	"dashboard",
	"tool_interactions",
	"tools",
	"users",
]
