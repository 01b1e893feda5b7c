"""
Security models - Roles enum
"""

import enum


class Role(str, enum.Enum):
    """RBAC roles carried in the JWT `roles` claim"""
    ADMIN = "ADMIN"
    PARENT = "PARENT"
    STUDENT = "STUDENT"
    SYSTEM = "SYSTEM"  # Webhooks, jobs and other unattended actors
