"""Progress notifications for long-running provider calls.

Progress is a side channel: listeners get start/stop events and an optional
rich status line animates while the call runs. Nothing here affects the
value or the exception of the wrapped call.
"""

import asyncio
import contextlib
import time
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from loguru import logger
from rich.console import Console


@dataclass(frozen=True)
class ProgressEvent:
    """One start or stop notification for a pipeline stage."""

    stage: str
    phase: Literal["start", "stop"]
    message: str
    ok: bool = True
    error: str | None = None
    elapsed_seconds: float = 0.0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


ProgressCallback = Callable[[ProgressEvent], None]


def emit(callbacks: Iterable[ProgressCallback], event: ProgressEvent) -> None:
    """Deliver an event to every listener; listener errors are logged only."""
    for callback in callbacks:
        try:
            callback(event)
        except Exception as e:
            logger.warning(f"Progress callback error: {e}")


async def _animate(console: Console, message: str, interval: float) -> None:
    with console.status(message, spinner="dots"):
        while True:
            await asyncio.sleep(interval)


@contextlib.asynccontextmanager
async def track_progress(
    stage: str,
    message: str,
    callbacks: Iterable[ProgressCallback] = (),
    console: Console | None = None,
    interval: float = 0.5,
) -> AsyncIterator[None]:
    """
    Scope a provider call with start/stop events and a status animation.

    The animation runs in its own task, started before the body and
    cancelled on every exit path.

    Args:
        stage: Stage name the events are keyed by.
        message: Human-readable description of the call.
        callbacks: Listeners for ProgressEvent.
        console: Console to animate on; no animation when omitted.
        interval: Animation tick in seconds.

    Example:
        >>> async with track_progress("decompose", "Generating tasks from PRD..."):
        ...     text = await client.call()
    """
    callbacks = list(callbacks)
    started = time.monotonic()
    emit(callbacks, ProgressEvent(stage=stage, phase="start", message=message))

    animation: asyncio.Task[None] | None = None
    if console is not None:
        animation = asyncio.create_task(_animate(console, message, interval))

    error: BaseException | None = None
    try:
        yield
    except BaseException as e:
        error = e
        raise
    finally:
        if animation is not None:
            animation.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await animation
        emit(
            callbacks,
            ProgressEvent(
                stage=stage,
                phase="stop",
                message=message,
                ok=error is None,
                error=str(error) if error is not None else None,
                elapsed_seconds=time.monotonic() - started,
            ),
        )
