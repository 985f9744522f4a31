"""Content store integration."""

from timelinemeta.store.base import ContentStore
from timelinemeta.store.sensenet import SenseNetContentStore

__all__ = ["ContentStore", "SenseNetContentStore"]
