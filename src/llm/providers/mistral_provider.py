from __future__ import annotations
import os
import httpx
from .base import ProviderConfigError, VisionProvider


class MistralProvider(VisionProvider):
    def __init__(self):
        self.api_key = os.getenv("MISTRAL_API_KEY", "").strip()
        self.model = os.getenv("MISTRAL_MODEL", "pixtral-12b").strip()
        self.base_url = os.getenv("MISTRAL_BASE_URL", "https://api.mistral.ai/v1").strip()

        if not self.api_key:
            raise ProviderConfigError("MISTRAL_API_KEY is not set in environment variables")

    def describe(self, *, prompt: str, image_url: str) -> dict:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": image_url},
                    ],
                },
            ],
        }

        with httpx.Client(timeout=60.0) as client:
            r = client.post(url, headers=headers, json=payload)
            r.raise_for_status()
            return r.json()
