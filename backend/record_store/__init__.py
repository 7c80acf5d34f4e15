from __future__ import annotations

from typing import Any, Dict, Optional


def load(config: Optional[Dict[str, Any]] = None):
    """
    Build a PersistenceGateway from the RECORD_STORE settings block (or an explicit dict).
    Raises RecordStoreConfigError when credentials are missing.
    """
    if config is None:
        from django.conf import settings
        config = settings.RECORD_STORE

    from .client import AirtableClient, DEFAULT_API_URL  # local import to avoid circulars
    from .gateway import PersistenceGateway

    client = AirtableClient(
        api_key=config.get("API_KEY", ""),
        base_id=config.get("BASE_ID", ""),
        api_url=config.get("API_URL") or DEFAULT_API_URL,
        timeout=config.get("TIMEOUT", 15),
    )
    return PersistenceGateway(client, tables=config["TABLES"])
