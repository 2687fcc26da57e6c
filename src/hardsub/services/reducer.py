"""Pure state transitions for the tracked encode job."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Tuple

from hardsub.models.actions import (
    CompleteAction,
    EncodeAction,
    ErrorAction,
    LogAction,
    ProgressAction,
    ResetAction,
    StartAction,
    StopAction,
)
from hardsub.models.encode import MAX_LOG_LINES, EncodeState, EncodeStatus

STARTING_MESSAGE = "正在启动FFmpeg..."
COMPLETED_MESSAGE = "✅ 压制完成！输出文件: {output_path}"
ERROR_MESSAGE = "❌ 错误: {message}"
STOPPED_MESSAGE = "⏹️ 用户请求停止"
STOP_FAILED_PREFIX = "停止失败: "

INITIAL_STATE = EncodeState()


def append_log(logs: Iterable[str], line: str, *, limit: int = MAX_LOG_LINES) -> Tuple[str, ...]:
    """Return ``logs`` with ``line`` appended, keeping only the newest ``limit`` entries."""

    window = deque(logs, maxlen=limit)
    window.append(line)
    return tuple(window)


def is_stale(state: EncodeState, action: EncodeAction) -> bool:
    """Whether ``action`` carries job chatter that no longer applies to ``state``.

    Progress and log events are only meaningful while a run is active; once the
    job has finished, failed or been stopped they are dropped unseen.
    """

    return isinstance(action, (ProgressAction, LogAction)) and state.status is not EncodeStatus.RUNNING


def transition(state: EncodeState, action: EncodeAction) -> EncodeState:
    """Apply ``action`` to ``state`` and return the next snapshot.

    Parameters
    ----------
    state:
        The current snapshot. It is never modified.
    action:
        One of the encode actions from :mod:`hardsub.models.actions`.

    Returns
    -------
    EncodeState
        A new snapshot. ``RESET`` returns the shared initial state.

    Raises
    ------
    TypeError
        If ``action`` is not a known encode action.
    """

    if isinstance(action, StartAction):
        return INITIAL_STATE.model_copy(update={"status": EncodeStatus.RUNNING, "logs": (STARTING_MESSAGE,)})

    if isinstance(action, ProgressAction):
        return state.model_copy(update={"progress": action.progress})

    if isinstance(action, LogAction):
        return state.model_copy(update={"logs": append_log(state.logs, action.line)})

    if isinstance(action, CompleteAction):
        progress = state.progress.model_copy(update={"percentage": 100}) if state.progress else None
        return state.model_copy(
            update={
                "status": EncodeStatus.COMPLETED,
                "output_path": action.output_path,
                "error": None,
                "progress": progress,
                "logs": append_log(state.logs, COMPLETED_MESSAGE.format(output_path=action.output_path)),
            }
        )

    if isinstance(action, ErrorAction):
        return state.model_copy(
            update={
                "status": EncodeStatus.ERROR,
                "error": action.message,
                "output_path": None,
                "logs": append_log(state.logs, ERROR_MESSAGE.format(message=action.message)),
            }
        )

    if isinstance(action, StopAction):
        return state.model_copy(
            update={
                "status": EncodeStatus.STOPPED,
                "error": None,
                "output_path": None,
                "logs": append_log(state.logs, STOPPED_MESSAGE),
            }
        )

    if isinstance(action, ResetAction):
        return INITIAL_STATE

    raise TypeError(f"Unsupported encode action: {action!r}")


__all__ = [
    "COMPLETED_MESSAGE",
    "ERROR_MESSAGE",
    "INITIAL_STATE",
    "STARTING_MESSAGE",
    "STOPPED_MESSAGE",
    "STOP_FAILED_PREFIX",
    "append_log",
    "is_stale",
    "transition",
]
