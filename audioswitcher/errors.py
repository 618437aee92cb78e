# audioswitcher/errors.py
"""
Exceptions raised inside the plugin.

Only conditions that callers must branch on get a type here. Device problems
seen at runtime (disconnected target, unexpected active device) are not
exceptions: they end up as an alert on the key.
"""


class AudioSwitcherError(Exception):
    """Base exception for the audioswitcher package."""
    pass


class ConfigurationAbsent(AudioSwitcherError):
    """Raised when button settings carry no usable 'direction'."""
    pass


class BackendNotAvailableError(AudioSwitcherError):
    """Raised when no audio device backend exists for this platform."""
    pass
