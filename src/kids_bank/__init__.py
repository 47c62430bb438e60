"""Kids savings desktop application package."""

__all__ = [
    "app",
    "backup",
    "config",
    "errors",
    "logging_config",
    "models",
    "storage",
    "store",
    "viewmodels",
    "widgets",
]
