"""
Repository interfaces - Define contracts for the backing stores
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Dict, Any, BinaryIO
from .models import Credential, Post


class ICredentialRepository(ABC):
    """Credential store interface"""

    @abstractmethod
    async def find_by_username(self, username: str) -> Optional[Credential]:
        """Find credential by username"""
        pass

    @abstractmethod
    async def exists(self, username: str) -> bool:
        """Check if a credential with this username exists"""
        pass

    @abstractmethod
    async def insert_if_absent(self, credential: Credential) -> bool:
        """Insert credential unless the username is taken; True if inserted"""
        pass


class IObjectStorage(ABC):
    """Object store interface"""

    @abstractmethod
    def upload_media(self, stream: BinaryIO, key: str, content_type: str) -> str:
        """Store the stream under key and return its public URL"""
        pass


class IPostIndex(ABC):
    """Geo-indexed search engine interface"""

    @abstractmethod
    async def index_post(self, post: Post) -> None:
        """Index one post document"""
        pass

    @abstractmethod
    async def search_nearby(self, lat: float, lon: float, distance: str) -> List[Dict[str, Any]]:
        """Return raw hits whose location lies within distance of (lat, lon)"""
        pass


class IPostArchive(ABC):
    """Wide-column archival store interface"""

    @abstractmethod
    async def write_post(self, post: Post, written_at: datetime) -> None:
        """Write author, message and location as separate columns"""
        pass


class ISearchCache(ABC):
    """Ephemeral key-value cache interface"""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Get cached bytes, None on miss or error"""
        pass

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int) -> bool:
        """Set bytes with expiry; never raises"""
        pass
