from __future__ import annotations

"""High-level orchestration services (generation, import)."""

from .localization_service import LocalizationService  # noqa: F401

__all__: list[str] = [
    "LocalizationService",
]
