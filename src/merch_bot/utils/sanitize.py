import re

_UNSAFE_CHARS = re.compile(r'[^a-zA-Z0-9\-_]')
_DASH_RUNS = re.compile(r'-+')


def sanitize_filename(text: str, max_length: int = 50) -> str:
    """Make a label safe for use inside a file name"""
    cleaned = _UNSAFE_CHARS.sub('-', text or '')
    cleaned = _DASH_RUNS.sub('-', cleaned).strip('-')
    return cleaned[:max_length]


def mask_sensitive(value: str, visible: int = 4) -> str:
    """Replace all but the last few characters with '*'"""
    if not value:
        return ''
    if len(value) <= visible:
        return '*' * visible
    return '*' * (len(value) - visible) + value[-visible:]
