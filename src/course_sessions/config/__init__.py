import os


def get_settings_module() -> str:
    # APP_ENV selects the settings module; development is the fallback.
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "course_sessions.config.production"

    if env in {"test", "testing"}:
        return "course_sessions.config.testing"

    return "course_sessions.config.development"
