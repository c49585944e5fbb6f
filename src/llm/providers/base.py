from __future__ import annotations
from abc import ABC, abstractmethod


class ProviderConfigError(RuntimeError):
    """Provider cannot be used because a required setting is missing."""


class VisionProvider(ABC):
    @abstractmethod
    def describe(self, *, prompt: str, image_url: str) -> dict:
        """
        Send one text instruction plus one image reference (https or data: URL).
        Must return the raw chat-completion JSON (parsed/validated in ImageDescriptionClient).
        """
        raise NotImplementedError
