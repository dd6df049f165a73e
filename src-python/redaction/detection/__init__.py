"""Detection package."""


def __getattr__(name: str):
    """Lazy re-export so that ``from redaction.detection import plan_page``
    works without importing the whole engine (and ``config``) up front."""
    if name in ("RedactionPlanner", "plan_page"):
        from redaction.detection import planner
        return getattr(planner, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
