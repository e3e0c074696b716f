"""
Blob Store - key to bytes object storage used for sources, previews and outputs.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class BlobStore(ABC):

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str,
                  content_disposition: Optional[str] = None) -> None:
        ...

    async def get_metadata(self, key: str) -> Dict[str, str]:
        return {}


class InMemoryBlobStore(BlobStore):

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, Dict[str, str]]] = {}

    async def get(self, key: str) -> Optional[bytes]:
        stored = self.objects.get(key)
        return stored[0] if stored else None

    async def put(self, key: str, data: bytes, content_type: str,
                  content_disposition: Optional[str] = None) -> None:
        metadata = {"content_type": content_type}
        if content_disposition:
            metadata["content_disposition"] = content_disposition
        self.objects[key] = (bytes(data), metadata)

    async def get_metadata(self, key: str) -> Dict[str, str]:
        stored = self.objects.get(key)
        return dict(stored[1]) if stored else {}


class LocalBlobStore(BlobStore):
    """
    Filesystem backed store. Objects live under `root/<key>` with a
    `<key>.meta.json` sidecar holding the HTTP metadata.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Blob key escapes storage root: {key}")
        return path

    async def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        if not path.exists():
            return None
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, path.read_bytes)

    async def put(self, key: str, data: bytes, content_type: str,
                  content_disposition: Optional[str] = None) -> None:
        path = self._path_for(key)
        metadata = {"content_type": content_type}
        if content_disposition:
            metadata["content_disposition"] = content_disposition

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            path.with_name(path.name + ".meta.json").write_text(json.dumps(metadata), encoding="utf-8")

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write)
        logger.debug(f"Stored {len(data)} bytes at {path}")

    async def get_metadata(self, key: str) -> Dict[str, str]:
        meta_path = self._path_for(key + ".meta.json")
        if not meta_path.exists():
            return {}
        return json.loads(meta_path.read_text(encoding="utf-8"))


@dataclass
class BlobStores:
    """Source bucket is required; previews and outputs fall back to inline artifacts."""
    source: BlobStore
    previews: Optional[BlobStore] = None
    outputs: Optional[BlobStore] = None
