"""BOM exceptions, raised to the caller and mapped to HTTP codes by the web layer."""


class BomError(Exception):
    """Base class for BOM errors."""


class VariantNotFoundError(BomError):
    pass


class ItemNotFoundError(BomError):
    pass


class BomEntryNotFoundError(BomError):
    pass


class FloorplanNotFoundError(BomError):
    pass


class PlacementNotFoundError(BomError):
    pass


class BomConflictError(BomError):
    """The floorplan already has a main entry for the requested variant."""


class InvalidPlacementError(BomError):
    """Placement rectangle without a positive width and height."""
