"""
Authenticated principal extracted from a bearer token
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Principal:
    """Authenticated caller"""
    subject: str  # JWT 'sub' claim
    email: Optional[str] = None
    roles: List[str] = field(default_factory=list)
    raw_claims: Dict[str, Any] = field(default_factory=dict)

    def has_role(self, role: str) -> bool:
        return role.upper() in (r.upper() for r in self.roles)
