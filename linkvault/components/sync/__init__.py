"""
Sync component - The container synchronization store.

Holds the optimistically updated mirror of the signed-in user's containers
and is the single path through which containers and links change.
"""

from .events import CONTAINER_CREATED, CONTAINER_DELETED, OPEN_CREATE_CONTAINER, CommandBus
from .soft_delete import DeleteKey, SoftDeleteScheduler
from .store import ContainerStore, is_move_conserved

__all__ = [
    "ContainerStore",
    "is_move_conserved",
    "SoftDeleteScheduler",
    "DeleteKey",
    "CommandBus",
    "OPEN_CREATE_CONTAINER",
    "CONTAINER_CREATED",
    "CONTAINER_DELETED",
]
