# Lazy imports so `from glidemigrate.core.ast_parser import parse_javascript`
# does not load the configuration or the strategy registry.

__all__ = [
    "MigrationConfig",
    "get_config",
    "load_config",
    "MigrationError",
    "ConfigurationError",
    "InputValidationError",
    "SubTransformFailure",
]

_IMPORT_MAP = {
    "MigrationConfig": ".config",
    "get_config": ".config",
    "load_config": ".config",
    "MigrationError": ".errors",
    "ConfigurationError": ".errors",
    "InputValidationError": ".errors",
    "SubTransformFailure": ".errors",
}


def __getattr__(name):
    if name in _IMPORT_MAP:
        import importlib
        module = importlib.import_module(_IMPORT_MAP[name], __package__)
        return getattr(module, name)
    raise AttributeError(f"module 'glidemigrate.core' has no attribute {name}")
