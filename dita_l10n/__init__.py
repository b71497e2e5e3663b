"""Top-level package for the DITA localization round-trip engine.

Front-ends (CLI, project tooling, tests) should only depend on the public API
exposed here rather than importing internal modules directly.
"""

from .config import EngineConfig
from .core.models import MergeOptions, MergeReport, ExtractionReport
from .core.projects import ProjectRegistry
from .core.services import LocalizationService

__all__: list[str] = [
    "EngineConfig",
    "ExtractionReport",
    "LocalizationService",
    "MergeOptions",
    "MergeReport",
    "ProjectRegistry",
]
