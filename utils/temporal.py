from typing import Optional

from temporalio.client import Client

from utils.config import Settings, get_settings


async def get_temporal_client(settings: Optional[Settings] = None) -> Client:
    """
    Connect to the Temporal server configured in the environment
    """
    settings = settings or get_settings()
    return await Client.connect(settings.temporal_address, namespace=settings.temporal_namespace)
