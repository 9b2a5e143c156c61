"""Grammar source checkouts: tracking, resolution and change detection."""

from .changes import ChangeScopeDetector, affected_languages
from .resolver import GrammarPath, LanguageSource, SourceResolver
from .tracker import CheckoutStatus, RepositoryStatus, SourceTracker

__all__ = [
    "ChangeScopeDetector",
    "CheckoutStatus",
    "GrammarPath",
    "LanguageSource",
    "RepositoryStatus",
    "SourceResolver",
    "SourceTracker",
    "affected_languages",
]
