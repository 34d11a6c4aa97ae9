"""Remote user-department mapping store integration."""

from .client import MAPPINGS_PATH, MappingStore, MappingStoreClient, mapping_path

__all__ = ["MAPPINGS_PATH", "MappingStore", "MappingStoreClient", "mapping_path"]
