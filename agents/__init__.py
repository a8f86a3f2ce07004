"""Agents – registration and credential resolution for council participants."""

from agents.identity import AgentIdentity, IdentityOracle
from agents.registry import AgentRegistry, Registration, generate_api_key

__all__ = [
    "AgentIdentity",
    "AgentRegistry",
    "IdentityOracle",
    "Registration",
    "generate_api_key",
]
