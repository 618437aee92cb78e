# audioswitcher/__init__.py

# Package-level entrypoint export, so the plugin can be started
# programmatically (tests, "python -c", a frozen launcher) as well as via
# `python -m audioswitcher`.
from .cli import main

__all__ = ["main"]
