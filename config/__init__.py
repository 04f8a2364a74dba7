import os

_BY_ENV = {
    "prod": "config.production",
    "production": "config.production",
    "test": "config.testing",
    "testing": "config.testing",
}


def get_settings_module() -> str:
    """Dotted path of the settings module for this process.

    VISITOR_REGISTRY_SETTINGS names a module outright; otherwise APP_ENV picks one of
    the bundled modules, falling back to development.
    """
    explicit = os.getenv("VISITOR_REGISTRY_SETTINGS", "").strip()
    if explicit:
        return explicit
    env = os.getenv("APP_ENV", "development").strip().lower()
    return _BY_ENV.get(env, "config.development")
