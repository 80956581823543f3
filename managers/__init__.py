"""Manager classes for the Asset Intake server"""

from managers.batch_repository import BatchRepository
from managers.defaults_manager import DefaultsManager
from managers.intake_manager import BatchProcessingError, IntakeManager
from managers.object_store import InMemoryObjectStore, LocalObjectStore

__all__ = [
    "BatchProcessingError",
    "BatchRepository",
    "DefaultsManager",
    "InMemoryObjectStore",
    "IntakeManager",
    "LocalObjectStore",
]
