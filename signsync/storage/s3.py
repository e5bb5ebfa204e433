from typing import Any, Dict

import boto3
from botocore.config import Config

class S3StorageProvider:
    provider_type = "s3"

    def __init__(
        self,
        *,
        bucket: str,
        region: str = "",
        prefix: str = "",
        public_base_url: str | None = None,
        timeout_s: int = 10,
        client: Any = None,
    ):
        self.bucket = bucket.strip()
        self.region = region.strip()
        self.prefix = prefix.strip().strip("/")
        self.public_base_url = (public_base_url or "").rstrip("/")
        if client is None:
            config = Config(
                connect_timeout=timeout_s,
                read_timeout=timeout_s,
                retries={"max_attempts": 2},
            )
            kwargs: Dict[str, Any] = {"config": config}
            if self.region:
                kwargs["region_name"] = self.region
            client = boto3.client("s3", **kwargs)
        self.client = client

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def store_bytes(self, *, key: str, data: bytes, content_type: str) -> Dict[str, Any]:
        if not self.bucket:
            raise RuntimeError("s3 bucket is required")
        full_key = self._key(key)
        self.client.put_object(Bucket=self.bucket, Key=full_key, Body=data, ContentType=content_type)
        return {
            "provider": "s3",
            "bucket": self.bucket,
            "region": self.region,
            "key": full_key,
            "content_type": content_type,
            "size_bytes": len(data),
        }

    def public_url(self, metadata: Dict[str, Any]) -> str:
        key = metadata["key"]
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        bucket = metadata.get("bucket") or self.bucket
        if self.region:
            return f"https://{bucket}.s3.{self.region}.amazonaws.com/{key}"
        return f"https://{bucket}.s3.amazonaws.com/{key}"

    def ping(self) -> bool:
        if not self.bucket:
            return False
        self.client.head_bucket(Bucket=self.bucket)
        return True
