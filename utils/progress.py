"""
Best-effort delivery of progress notifications.
"""

from typing import Any, Callable, Optional

from loguru import logger

ProgressCallback = Callable[..., Any]


def notify(callback: Optional[ProgressCallback], *args: Any, name: str = "progress", log=None) -> None:
    """
    Call a caller-supplied progress callback.

    A callback that raises is logged and ignored; it never changes the
    outcome of the operation reporting the progress.
    """
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        (log or logger).opt(exception=True).warning(f"{name} callback failed for {args}")
