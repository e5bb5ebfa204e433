import os
from pathlib import Path
from typing import Any, Dict

class LocalStorageProvider:
    provider_type = "local"

    def __init__(self, base_path: str | Path, public_base_url: str | None = None):
        self.base_path = Path(base_path)
        self.public_base_url = (public_base_url or "").rstrip("/")

    def store_bytes(self, *, key: str, data: bytes, content_type: str) -> Dict[str, Any]:
        full_path = self.base_path / key
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(data)
        return {
            "provider": "local",
            "key": key,
            "path": str(full_path),
            "content_type": content_type,
            "size_bytes": len(data),
        }

    def public_url(self, metadata: Dict[str, Any]) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{metadata['key']}"
        return Path(metadata["path"]).resolve().as_uri()

    def ping(self) -> bool:
        self.base_path.mkdir(parents=True, exist_ok=True)
        return os.access(self.base_path, os.W_OK)
