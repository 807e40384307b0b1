from review_import.adapters.base import SourceAdapter
from review_import.adapters.jpdb import JpdbAdapter

ADAPTERS = {
    JpdbAdapter.name: JpdbAdapter,
}


def get_adapter(name: str) -> SourceAdapter:
    """Instantiate the adapter registered under name."""
    try:
        return ADAPTERS[name]()
    except KeyError:
        raise ValueError(f"Unknown source {name!r}, expected one of {sorted(ADAPTERS)}") from None


__all__ = ["SourceAdapter", "JpdbAdapter", "ADAPTERS", "get_adapter"]
