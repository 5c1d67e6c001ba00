"""Astarte AppEngine connector - device data as Lakeflow-style tables."""


def __getattr__(name):
    """Lazy import to avoid importing pyspark-dependent modules at package init time."""
    if name == "AppEngineLakeflowConnect":
        # pylint: disable=import-outside-toplevel
        from astarte_connector.sources.appengine.appengine import AppEngineLakeflowConnect

        return AppEngineLakeflowConnect
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["AppEngineLakeflowConnect"]  # pylint: disable=undefined-all-variable
