from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from linkvault.adapters.clock import SystemClock
from linkvault.adapters.github import GitHubRepoMetadata
from linkvault.adapters.memory import (
    InMemoryCollectionGateway,
    InMemoryShareLinkGateway,
    InMemorySharingGateway,
    InMemoryUserDirectory,
)
from linkvault.adapters.sqlite import (
    SQLiteCollectionGateway,
    SQLiteShareLinkGateway,
    SQLiteSharingGateway,
    SQLiteUserDirectory,
)
from linkvault.components.preview import PreviewResolver
from linkvault.components.sync import CommandBus, ContainerStore
from linkvault.ports.clock import TimePort
from linkvault.ports.gateway import CollectionGatewayPort
from linkvault.ports.sharing import ShareLinkGatewayPort, SharingGatewayPort
from linkvault.ports.users import UserDirectoryPort
from linkvault.rules.models import Rules


@dataclass
class ServiceContext:
    rules: Rules
    clock: TimePort
    gateway: CollectionGatewayPort
    sharing: SharingGatewayPort
    share_links: ShareLinkGatewayPort
    users: UserDirectoryPort
    preview: PreviewResolver
    bus: CommandBus = field(default_factory=CommandBus)

    @classmethod
    def create(cls, db_path: str, rules: Rules, clock: Any = None) -> ServiceContext:
        clock = clock or SystemClock()
        repo_metadata = (
            GitHubRepoMetadata(timeout=rules.preview.timeout_seconds)
            if rules.preview.github_enabled
            else None
        )
        return cls(
            rules=rules,
            clock=clock,
            gateway=SQLiteCollectionGateway(db_path, clock),
            sharing=SQLiteSharingGateway(db_path),
            share_links=SQLiteShareLinkGateway(db_path),
            users=SQLiteUserDirectory(db_path),
            preview=PreviewResolver(rules.preview, repo_metadata),
        )

    @classmethod
    def create_in_memory(cls, rules: Rules, clock: Any = None) -> ServiceContext:
        """Same wiring over in-memory gateways, without network enrichment."""
        clock = clock or SystemClock()
        return cls(
            rules=rules,
            clock=clock,
            gateway=InMemoryCollectionGateway(clock),
            sharing=InMemorySharingGateway(),
            share_links=InMemoryShareLinkGateway(),
            users=InMemoryUserDirectory(),
            preview=PreviewResolver(rules.preview),
        )

    def store(self) -> ContainerStore:
        return ContainerStore(
            self.gateway,
            self.sharing,
            self.clock,
            rules=self.rules,
            preview=self.preview,
            bus=self.bus,
        )
