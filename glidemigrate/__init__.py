"""glidemigrate -- rewrite ioredis / node-redis code for Valkey GLIDE."""

__version__ = "0.1.0"

__all__ = ["MigrationEngine", "format_report", "migrate"]

_IMPORT_MAP = {
    "MigrationEngine": ".core.migration",
    "format_report": ".core.migration",
    "migrate": ".core.migration",
}


def __getattr__(name):
    if name in _IMPORT_MAP:
        import importlib
        module = importlib.import_module(_IMPORT_MAP[name], __package__)
        return getattr(module, name)
    raise AttributeError(f"module 'glidemigrate' has no attribute {name}")
