"""
Review import - replay third-party review histories into FSRS card state

Quick start:
    import asyncio
    from review_import import (
        ImportOrchestrator, ImportSettings, ItemResolutionAdapter,
        JpdbAdapter, MongoSubjectService, SqlCardStore,
    )
    from review_import.item_resolution import get_subjects_collection

    settings = ImportSettings.from_env()
    cards = JpdbAdapter().normalize(export_json)
    resolver = ItemResolutionAdapter(MongoSubjectService(get_subjects_collection(settings)))
    orchestrator = ImportOrchestrator(resolver, SqlCardStore(), settings=settings)
    result = asyncio.run(orchestrator.import_reviews("user-1", "jpdb", cards))
"""

from review_import.adapters import JpdbAdapter, SourceAdapter, get_adapter
from review_import.config import ImportSettings
from review_import.errors import (
    ImportFailedError,
    ImportInputError,
    PersistenceError,
    ResolutionError,
    ReviewImportError,
    SimulationError,
)
from review_import.fsrs.database import SqlCardStore
from review_import.importing import ImportOrchestrator, import_reviews
from review_import.item_resolution import ItemResolutionAdapter, MongoSubjectService, ResolutionCache
from review_import.records import ExistingCard, UpsertRecord
from review_import.schemas import (
    CanonicalItem,
    ImportResult,
    ItemType,
    NormalizedCard,
    PracticeMode,
    ReviewEvent,
    SourceTypeStats,
)

__all__ = [
    # Pipeline
    "ImportOrchestrator",
    "import_reviews",
    "ImportSettings",

    # Collaborators
    "ItemResolutionAdapter",
    "MongoSubjectService",
    "ResolutionCache",
    "SqlCardStore",
    "JpdbAdapter",
    "SourceAdapter",
    "get_adapter",

    # Data
    "CanonicalItem",
    "ExistingCard",
    "ImportResult",
    "ItemType",
    "NormalizedCard",
    "PracticeMode",
    "ReviewEvent",
    "SourceTypeStats",
    "UpsertRecord",

    # Errors
    "ReviewImportError",
    "ImportInputError",
    "ImportFailedError",
    "ResolutionError",
    "SimulationError",
    "PersistenceError",
]
