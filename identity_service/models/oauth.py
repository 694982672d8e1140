"""
OAuth Models
Model definitions for registered clients
"""

from typing import Optional, Dict, Any
from datetime import datetime
from dataclasses import dataclass


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class ClientRegistryInfo:
    """Registered OAuth client"""
    client_id: str
    display_name: str
    app_name: str
    publisher_domain: str
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ClientRegistryInfo":
        return cls(
            client_id=row['client_id'],
            display_name=row['display_name'],
            app_name=row['app_name'],
            publisher_domain=row['publisher_domain'],
            created_at=row.get('created_at'),
            last_used_at=row.get('last_used_at')
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            'client_id': self.client_id,
            'display_name': self.display_name,
            'app_name': self.app_name,
            'publisher_domain': self.publisher_domain,
            'created_at': _iso(self.created_at),
            'last_used_at': _iso(self.last_used_at)
        }

