"""CLI commands for replaying recorded encode job events through an encode session."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Callable, Optional, Sequence

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from hardsub.config.settings import Settings, get_settings
from hardsub.models.encode import EncodeParams, EncodeState, EncodeStatus, OutputFormat, SubtitleEncoding, VideoCodec
from hardsub.services.backend import ReplayBackend, ReplayEvent, load_replay_events
from hardsub.services.errors import ReplayFormatError
from hardsub.services.events import LocalEventHub
from hardsub.services.session import EncodeSession


class ReplayExitCode:
    """Mapping of meaningful CLI exit codes."""

    COMPLETED = 0
    INVALID_INPUT = 1
    ENCODE_ERROR = 2
    STOPPED = 3


_STATUS_EXIT_CODES = {
    EncodeStatus.COMPLETED: ReplayExitCode.COMPLETED,
    EncodeStatus.ERROR: ReplayExitCode.ENCODE_ERROR,
}

_STATUS_STYLES = {
    EncodeStatus.IDLE: "dim",
    EncodeStatus.RUNNING: "cyan",
    EncodeStatus.COMPLETED: "green",
    EncodeStatus.ERROR: "red",
    EncodeStatus.STOPPED: "yellow",
}


def register(app: typer.Typer, console: Console, settings: Optional[Settings] = None) -> None:
    """Register CLI commands for event replay and channel inspection."""

    def active_settings() -> Settings:
        return settings or get_settings()

    @app.command("replay")
    def replay(  # pylint: disable=too-many-arguments
        file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON-lines file of recorded events"),
        video: str = typer.Option("input.mp4", "--video", help="Source video path sent to the backend"),
        subtitle: str = typer.Option("input.srt", "--subtitle", help="Subtitle path sent to the backend"),
        output_dir: str = typer.Option(".", "--output-dir", help="Destination directory sent to the backend"),
        output_format: OutputFormat = typer.Option(OutputFormat.MP4, "--format", help="Output container"),
        codec: VideoCodec = typer.Option(VideoCodec.LIBX264, "--codec", help="Video codec"),
        crf: int = typer.Option(23, "--crf", help="Quality factor (0-51)"),
        subtitle_encoding: SubtitleEncoding = typer.Option(
            SubtitleEncoding.UTF8, "--subtitle-encoding", help="Subtitle text encoding"
        ),
        timeout: Optional[float] = typer.Option(
            None, "--timeout", help="Seconds to wait for the job to finish before stopping it"
        ),
        tail: Optional[int] = typer.Option(None, "--tail", min=1, help="Number of log lines to display"),
        json_output: bool = typer.Option(False, "--json", help="Output the final state as JSON"),
    ) -> None:
        current = active_settings()

        try:
            events = load_replay_events(file)
            params = EncodeParams(
                video_path=video,
                subtitle_path=subtitle,
                output_dir=output_dir,
                output_format=output_format,
                video_codec=codec,
                crf=crf,
                subtitle_encoding=subtitle_encoding,
            )
        except ReplayFormatError as exc:
            console.print(f"[red]Error:[/red] {exc}")
            raise typer.Exit(code=ReplayExitCode.INVALID_INPUT) from exc
        except ValidationError as exc:
            console.print(f"[red]Invalid encode parameters:[/red] {exc.error_count()} error(s)")
            raise typer.Exit(code=ReplayExitCode.INVALID_INPUT) from exc

        wait_seconds = timeout if timeout is not None else current.replay_timeout_seconds

        if json_output:
            final_state = asyncio.run(_replay(events, params, current, console, wait_seconds, observer=None))
            typer.echo(json.dumps(_state_payload(final_state), ensure_ascii=False, indent=2))
        else:
            progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TextColumn("{task.percentage:>3.0f}%"),
                TimeElapsedColumn(),
                console=console,
                transient=True,
            )
            with progress as running_progress:
                task_id = running_progress.add_task("Encoding", total=100)
                observer = _progress_observer_factory(running_progress, task_id)
                final_state = asyncio.run(_replay(events, params, current, console, wait_seconds, observer=observer))
            _render_state(console, final_state, tail if tail is not None else current.log_tail_lines)

        raise typer.Exit(code=_STATUS_EXIT_CODES.get(final_state.status, ReplayExitCode.STOPPED))

    @app.command("channels")
    def channels(
        json_output: bool = typer.Option(False, "--json", help="Output channel names as JSON"),
    ) -> None:
        configured = active_settings().channels

        if json_output:
            typer.echo(json.dumps(configured.model_dump(), ensure_ascii=False, indent=2))
            return

        table = Table(title="Event Channels")
        table.add_column("Event")
        table.add_column("Channel")
        for name, channel in configured.model_dump().items():
            table.add_row(name, channel)
        console.print(table)


async def _replay(
    events: Sequence[ReplayEvent],
    params: EncodeParams,
    settings: Settings,
    console: Console,
    timeout: float,
    *,
    observer: Optional[Callable[[EncodeState], None]],
) -> EncodeState:
    hub = LocalEventHub()
    backend = ReplayBackend(hub, events, channels=settings.channels, console=console)

    async with EncodeSession(backend, hub, settings=settings, console=console) as session:
        if observer is not None:
            session.observe(observer)
        await session.ready()
        await session.start(params)
        try:
            await session.wait_until_finished(timeout)
        except asyncio.TimeoutError:
            console.log(f"[yellow]No terminal event after {timeout:.1f}s; stopping job.[/yellow]")
            await session.stop()
        return session.state


def _progress_observer_factory(progress: Progress, task_id: TaskID) -> Callable[[EncodeState], None]:
    def observer(state: EncodeState) -> None:
        if state.progress is None:
            return
        progress.update(
            task_id,
            completed=state.progress.percentage,
            description=f"Encoding ({state.progress.speed}, {state.progress.fps:.1f} fps)",
        )

    return observer


def _state_payload(state: EncodeState) -> dict[str, object]:
    return {
        "status": state.status.value,
        "progress": state.progress.model_dump(mode="json") if state.progress else None,
        "output_path": state.output_path,
        "error": state.error,
        "logs": list(state.logs),
    }


def _render_state(console: Console, state: EncodeState, tail: int) -> None:
    style = _STATUS_STYLES[state.status]
    console.print(Panel.fit(f"Status: [bold {style}]{state.status.value}[/bold {style}]", border_style=style))

    if state.progress is not None:
        table = Table(show_header=False, box=None)
        table.add_column()
        table.add_column()
        table.add_row("Frame", str(state.progress.frame))
        table.add_row("FPS", f"{state.progress.fps:.1f}")
        table.add_row("Time", state.progress.time)
        table.add_row("Speed", state.progress.speed)
        table.add_row("Progress", f"{state.progress.percentage}%")
        console.print(table)

    if state.output_path:
        console.print(f"[bold]Output:[/bold] {escape(state.output_path)}")
    if state.error:
        console.print(f"[bold red]Error:[/bold red] {escape(state.error)}")

    if state.logs:
        shown = state.logs[-tail:]
        console.print(Panel.fit(Text("\n".join(shown)), title=f"Log (last {len(shown)} of {len(state.logs)})", border_style="blue"))
