from signsync.config import Settings, settings as default_settings
from signsync.storage.local import LocalStorageProvider
from signsync.storage.s3 import S3StorageProvider

def get_storage_provider(cfg: Settings | None = None):
    cfg = cfg or default_settings
    backend = (cfg.storage_backend or "local").strip().lower()
    if backend == "s3":
        return S3StorageProvider(
            bucket=cfg.s3_bucket,
            region=cfg.s3_region,
            prefix=cfg.s3_prefix,
            public_base_url=cfg.storage_public_base_url,
            timeout_s=cfg.s3_timeout_s,
        )
    return LocalStorageProvider(cfg.storage_local_path, cfg.storage_public_base_url)
