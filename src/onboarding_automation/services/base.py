from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional


class DirectoryError(RuntimeError):
    pass


class DirectoryService(ABC):
    """Abstract base class for the account directory the hires are created in."""

    @abstractmethod
    def user_exists(self, username: str) -> bool:
        """Point-in-time existence check"""
        pass

    @abstractmethod
    def create_user(self, username: str, password: str, attributes: Dict[str, str]) -> None:
        """Create an enabled account; raises on failure"""
        pass

    @abstractmethod
    def add_to_group(self, username: str, group_name: str) -> None:
        """Add account to group; raises on failure"""
        pass


@dataclass(frozen=True)
class DirectoryEntry:
    address: str
    created_at: Optional[datetime] = None


class DirectoryLookup(ABC):
    """Read-only view of the secondary directory accounts propagate into."""

    @abstractmethod
    def lookup(self, address: str) -> Optional[DirectoryEntry]:
        """Return the entry for address, or None when it does not exist"""
        pass
