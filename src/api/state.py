from typing import Optional
from llm.image_client import ImageDescriptionClient
from storage.auth_client import AuthClient
from storage.store_client import StoreClient

# Global instances initialized at startup (see api.main)
store_client: Optional[StoreClient] = None
auth_client: Optional[AuthClient] = None
image_client: Optional[ImageDescriptionClient] = None
