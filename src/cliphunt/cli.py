import asyncio
import sys
from pathlib import Path

import click

from cliphunt.ai.backends import SUPPORTED_BACKENDS, create_backend
from cliphunt.ai.pipeline import PipelineConfig
from cliphunt.ai.search import SearchConfig
from cliphunt.ai.session import ClipSession, FailedEvent, ProgressEvent, ReadyEvent
from cliphunt.base.clip import Clip, RankedClip
from cliphunt.base.exceptions import ClipHuntError
from cliphunt.base.progress import set_progress
from cliphunt.base.sorting import SortOrder
from cliphunt.base.video import FFmpegVideoSource, download_video, export_clip
from cliphunt.utils.logger import setup_logger


def _format_time(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


def _echo_results(results: list[RankedClip], query: str) -> None:
    if not results:
        click.echo(f"No clips match '{query}'." if query else "No clips found.")
        return
    for ranked in results:
        clip = ranked.clip
        line = f"[{_format_time(clip.start_time)}-{_format_time(clip.end_time)}] {clip.title} (virality {clip.virality_score})"
        if query:
            line += f" score={ranked.score:.2f}"
        click.echo(line)
        if clip.tags:
            click.echo("    " + " ".join(clip.tags))


async def _analyze(session: ClipSession, source: FFmpegVideoSource, query: str) -> bool:
    last_stage = None
    async for event in session.start_pipeline(source):
        if isinstance(event, ProgressEvent):
            if event.stage != last_stage:
                if last_stage is not None:
                    click.echo("", err=True)
                last_stage = event.stage
            click.echo(f"\r{event.stage}... {event.percent}%", nl=False, err=True)
        elif isinstance(event, FailedEvent):
            click.echo("", err=True)
            click.secho(f"Analysis failed: {event.reason}", fg="red", err=True)
            return False
        elif isinstance(event, ReadyEvent):
            click.echo("", err=True)
            result = event.result
            click.echo(
                f"Found {len(event.clips)} clips ({result.embedded_count} indexed), "
                f"{len(event.transcript)} transcript segments.",
                err=True,
            )

    if query:
        await session.search(query)
    _echo_results(session.results, query)
    return True


@click.group(help="Find, search and export highlight clips of a video.")
@click.option("--log-level", default=None, help="Logging level, defaults to the LOG_LEVEL environment variable.")
@click.option("--progress/--no-progress", default=False, help="Show progress bars for frame extraction.")
def main(log_level: str | None, progress: bool):
    setup_logger(log_level)
    set_progress(progress)


@main.command(help="Analyze a video and list its highlight clips.")
@click.argument("video", type=click.Path(exists=True, dir_okay=False))
@click.option("-q", "--query", default="", help="Only list clips matching this search query.")
@click.option(
    "-s",
    "--sort",
    "sort_order",
    default=SortOrder.CHRONOLOGICAL.value,
    type=click.Choice([order.value for order in SortOrder]),
    help="Order of the listed clips.",
)
@click.option("-b", "--backend", default=None, type=click.Choice(SUPPORTED_BACKENDS), help="Analysis backend.")
@click.option("-k", "--api-key", default=None, help="API key, read from the environment if omitted.")
@click.option("--save", "save_path", default=None, type=click.Path(dir_okay=False), help="Write the session as JSON.")
def analyze(video: str, query: str, sort_order: str, backend: str | None, api_key: str | None, save_path: str | None):
    try:
        pipeline_config = PipelineConfig.from_config()
        session = ClipSession(
            create_backend(backend, api_key=api_key),  # type: ignore[arg-type]
            pipeline_config=pipeline_config,
            search_config=SearchConfig.from_config(),
            sort_order=sort_order,
        )
        source = FFmpegVideoSource(video, frame_width=pipeline_config.frame_width)
    except ClipHuntError as e:
        raise click.ClickException(str(e))

    succeeded = asyncio.run(_analyze(session, source, query))
    if save_path:
        session.save(save_path)
        click.echo(f"Session saved to {save_path}", err=True)
    if not succeeded:
        sys.exit(1)


@main.command(help="Cut one clip out of a video.")
@click.argument("video", type=click.Path(exists=True, dir_okay=False))
@click.option("--start", required=True, type=float, help="Clip start in seconds.")
@click.option("--end", required=True, type=float, help="Clip end in seconds.")
@click.option("-t", "--title", default="clip", help="Title used for the output file name.")
@click.option(
    "-o",
    "--output-dir",
    default=".",
    type=click.Path(file_okay=False, dir_okay=True, writable=True),
    help="Directory to save the clip.",
)
def export(video: str, start: float, end: float, title: str, output_dir: str):
    source = FFmpegVideoSource(video)
    clip = Clip(id="clip-manual-0", start_time=start, end_time=end, title=title, summary="", virality_score=0)
    try:
        output_path = asyncio.run(export_clip(source, clip, output_dir))
    except ClipHuntError as e:
        raise click.ClickException(str(e))
    click.echo(f"Clip {output_path} exported.")


@main.command(help="Download a video file over HTTP.")
@click.argument("url")
@click.option(
    "-o",
    "--output-dir",
    default=".",
    type=click.Path(file_okay=False, dir_okay=True, writable=True),
    help="Directory to save the downloaded video.",
)
def download(url: str, output_dir: str):
    try:
        video_path = download_video(url, Path(output_dir))
    except ClipHuntError as e:
        raise click.ClickException(str(e))
    click.echo(f"Video {video_path} downloaded.")


if __name__ == "__main__":
    main()
