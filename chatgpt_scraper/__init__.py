# chatgpt_scraper/__init__.py
"""
chatgpt-scraper - drive the ChatGPT web assistant through a headless browser.

Tracks login state and the active conversation, submits prompts and detects
when a streamed reply has finished.
"""

from pathlib import Path


def _get_version() -> str:
    """
    Read the version from pyproject.toml so a source checkout reports the same
    version as the installed distribution.

    Returns:
        str: version string (e.g. "0.1.0")
    """
    try:
        import tomllib  # Python 3.11+ standard library

        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
            return data.get("project", {}).get("version", "0.0.0")
    except Exception:
        pass

    return "0.1.0"


__version__ = _get_version()
__app_name__ = "chatgpt-scraper"


def __getattr__(name: str):
    """Lazy access to the public facade without importing Playwright eagerly."""
    if name == 'ScraperSettings':
        from chatgpt_scraper.config.settings import ScraperSettings
        return ScraperSettings
    if name in ('ChatGPTHandler', 'ScraperEvent'):
        from chatgpt_scraper import services
        return getattr(services, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
