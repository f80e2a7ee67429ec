"""Storage package utilities."""

__all__ = ["CarryOverMarker", "StorageController", "probe"]


def __getattr__(name: str):
    if name == "CarryOverMarker":
        from storage.carry_over import CarryOverMarker

        return CarryOverMarker
    if name == "StorageController":
        from storage.controller import StorageController

        return StorageController
    if name == "probe":
        from storage.diagnostics import probe

        return probe
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
