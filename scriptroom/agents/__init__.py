"""
Agent team: role profiles, action schemas and workers.
"""
from .profiles import AgentRole, COORDINATOR, ROLE_PROFILES, RoleProfile, get_profile, resolve_role

__all__ = [
    "AgentRole",
    "COORDINATOR",
    "ROLE_PROFILES",
    "RoleProfile",
    "get_profile",
    "resolve_role",
]
