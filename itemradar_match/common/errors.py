"""Exception hierarchy shared by the matching core and the API layer."""


class ItemRadarError(Exception):
    """Base class for errors raised by itemradar_match."""


class ConfigurationError(ItemRadarError, RuntimeError):
    """Required configuration is missing or invalid."""


class ItemNotFoundError(ItemRadarError, LookupError):
    def __init__(self, item_type: str, item_id: str):
        super().__init__(f"{item_type} item not found: {item_id}")
        self.item_type = item_type
        self.item_id = item_id


class ExtractionError(ItemRadarError):
    """The AI attribute extractor did not produce a usable result."""
