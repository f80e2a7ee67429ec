"""Configuration package utilities."""

__all__ = ["ConfigController", "PACKAGED_DEFAULT", "probe"]


def __getattr__(name: str):
    if name in {"ConfigController", "PACKAGED_DEFAULT"}:
        from config import controller

        return getattr(controller, name)
    if name == "probe":
        from config.diagnostics import probe

        return probe
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
