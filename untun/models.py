"""
Tunnel data structures.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Optional, Union


@dataclass
class ConnectionSlot:
    """One edge connection held by cloudflared, addressed by its connIndex."""

    id: str = ''
    ip: str = ''
    location: str = ''

    @property
    def up(self) -> bool:
        return bool(self.id)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['up'] = self.up
        return data


@dataclass
class TunnelState:
    """Everything observed so far in cloudflared's output."""

    url: Optional[str] = None
    connections: Dict[int, ConnectionSlot] = field(default_factory=dict)
    metrics: str = ''
    config: dict = field(default_factory=dict)
    tunnel_id: str = ''
    connector_id: str = ''

    @property
    def ingress(self) -> list:
        return self.config.get('ingress') or []

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            'url': self.url,
            'connections': {
                index: slot.to_dict() for index, slot in sorted(self.connections.items())
            },
            'metrics': self.metrics,
            'config': self.config,
            'tunnel_id': self.tunnel_id,
            'connector_id': self.connector_id,
        }


@dataclass
class TunnelOptions:
    """Options accepted by start_tunnel()."""

    url: Optional[str] = None
    port: Optional[Union[int, str]] = None
    hostname: Optional[str] = None
    protocol: Optional[str] = None
    verify_tls: bool = True
    accept_notice: bool = False

    def target_url(self) -> str:
        """
        Return the local URL cloudflared should forward to.

        An explicit url wins; otherwise protocol, hostname and port are
        composed with defaults of http, localhost and 3000.
        """
        if self.url:
            return self.url
        protocol = self.protocol or 'http'
        hostname = self.hostname or 'localhost'
        port = self.port if self.port not in (None, '') else 3000
        return f"{protocol}://{hostname}:{port}"

    @classmethod
    def from_dict(cls, data: dict) -> 'TunnelOptions':
        """Deserialize from dictionary, ignoring unknown keys."""
        known = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        return cls(**known)
