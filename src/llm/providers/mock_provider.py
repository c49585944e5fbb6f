from __future__ import annotations
from llm.providers.base import VisionProvider

CANNED_DESCRIPTION = (
    "A whiteboard with a handwritten list. Buy milk, Walk the dog. "
    "Call mom about Sunday dinner"
)


class MockProvider(VisionProvider):
    def describe(self, *, prompt: str, image_url: str) -> dict:
        """
        Returns a fixed chat-completion payload so the import flow can be exercised offline.
        """
        return {
            "id": "mock",
            "model": "mock",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": CANNED_DESCRIPTION},
                    "finish_reason": "stop",
                }
            ],
        }
