"""CLI entry point for the scene director."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

import typer

from . import __version__
from .config import config
from .errors import PreconditionError, SceneDirectorError
from .models import Project
from .orchestration import GenerationEngine, SceneStateStore
from .services import Credentials, ProviderRegistry

app = typer.Typer(
    name="scene-director",
    help="AI storyboard image and video generation",
    no_args_is_help=True
)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"scene-director version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """Scene Director - Generate storyboard keyframes and clips using AI."""
    pass


ProjectOption = typer.Option(
    Path("project.yaml"),
    "--project",
    "-p",
    help="Path to project YAML file",
    exists=True,
    file_okay=True,
    dir_okay=False
)

VerboseOption = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable verbose logging"
)


def _load_project(path: Path) -> Project:
    try:
        return Project.from_yaml(path)
    except Exception as e:
        typer.echo(f"❌ Error loading project: {e}")
        raise typer.Exit(1)


def _build_engine(project: Project) -> GenerationEngine:
    try:
        config.validate_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    credentials = Credentials.from_config(config)

    try:
        registry = ProviderRegistry.from_credentials(credentials)
    except SceneDirectorError as e:
        typer.echo(f"❌ Failed to initialize providers: {e}")
        raise typer.Exit(1)

    return GenerationEngine(SceneStateStore(project), registry)


def _run(engine: GenerationEngine, coro) -> object:
    """Run a coroutine, turning Ctrl-C into an advisory stop."""

    async def _main():
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, _on_interrupt)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handlers unavailable; Ctrl-C will abort immediately")
        try:
            return await coro
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass

    def _on_interrupt() -> None:
        if engine.is_running and not engine.is_stopping:
            typer.echo("\n⏹️  Stopping after in-flight scenes settle (Ctrl-C again to abort)...")
            engine.stop()
        else:
            raise KeyboardInterrupt

    return asyncio.run(_main())


def _save(engine: GenerationEngine, path: Path) -> None:
    engine.store.project.to_yaml(path)
    typer.echo(f"💾 Saved: {path}")


def _print_failures(engine: GenerationEngine, scene_ids: list[str]) -> None:
    for scene_id in scene_ids:
        error = engine.store.get(scene_id).last_error
        typer.echo(f"   ❌ {scene_id}: {error or 'unknown error'}")


@app.command()
def status(
    project_file: Path = ProjectOption,
) -> None:
    """Show storyboard generation status."""
    project = _load_project(project_file)

    typer.echo(f"📁 Project: {project.name}")
    typer.echo(f"   Aspect ratio: {project.aspect_ratio}")
    typer.echo(f"   Scenes: {len(project.scenes)}")
    typer.echo(f"   Characters: {len(project.characters)}  Products: {len(project.products)}")

    typer.echo("\n📽️  Scenes:")
    for scene in project.ordered_scenes():
        image_icon = "🖼️ " if scene.image else "⏳"
        video = f"  video: {scene.video_status.value}" if scene.video_status else ""
        typer.echo(f"   {image_icon} {scene.id}{video}")
        if scene.context_description:
            preview = scene.context_description[:60]
            if len(scene.context_description) > 60:
                preview += "..."
            typer.echo(f"      → {preview}")
        if scene.last_error:
            typer.echo(f"      ⚠️  {scene.last_error}")


@app.command()
def generate(
    scene_id: str = typer.Argument(
        ...,
        help="Scene to generate"
    ),
    project_file: Path = ProjectOption,
    refine: Optional[str] = typer.Option(
        None,
        "--refine",
        "-r",
        help="Change to apply to the existing image"
    ),
    end_frame: bool = typer.Option(
        False,
        "--end-frame",
        help="Generate the end frame instead of the keyframe"
    ),
    verbose: bool = VerboseOption,
) -> None:
    """Generate or refine the image of one scene."""
    setup_logging(verbose)
    project = _load_project(project_file)
    engine = _build_engine(project)

    label = "Refining" if refine else "Generating"
    typer.echo(f"🎨 {label} scene {scene_id}{' (end frame)' if end_frame else ''}")

    try:
        ok = _run(engine, engine.generate_one(scene_id, refinement=refine, end_frame=end_frame))
    except (PreconditionError, KeyError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    _save(engine, project_file)
    if not ok:
        _print_failures(engine, [scene_id])
        raise typer.Exit(1)
    typer.echo(f"✅ Scene {scene_id} done")


@app.command("generate-all")
def generate_all(
    project_file: Path = ProjectOption,
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-c",
        help="Maximum concurrent generations",
        min=1,
        max=10
    ),
    continuity: bool = typer.Option(
        False,
        "--continuity",
        help="Generate strictly in order, conditioning each shot on the previous one"
    ),
    verbose: bool = VerboseOption,
) -> None:
    """Generate images for every scene that does not have one."""
    setup_logging(verbose)
    project = _load_project(project_file)
    engine = _build_engine(project)

    pending = [s for s in project.ordered_scenes() if s.needs_image()]
    typer.echo(f"🎬 Generating {len(pending)} scene(s)")
    if continuity:
        typer.echo("   Continuity mode: one at a time")
    if not pending:
        typer.echo("\n✅ No scenes to generate")
        raise typer.Exit(0)

    try:
        report = _run(engine, engine.generate_all(continuity=continuity, concurrency=concurrency))
    except PreconditionError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    _save(engine, project_file)

    typer.echo(f"\n📊 Batch {report.state.value}:")
    typer.echo(f"   ✅ Succeeded: {len(report.succeeded)}")
    typer.echo(f"   ❌ Failed: {len(report.failed)}")
    if report.skipped:
        typer.echo(f"   ⏭️  Skipped: {len(report.skipped)}")
    if report.not_started:
        typer.echo(f"   ⏭️  Not started: {len(report.not_started)}")
    _print_failures(engine, report.failed)

    if report.failed:
        raise typer.Exit(1)


@app.command()
def videos(
    project_file: Path = ProjectOption,
    scene_id: Optional[str] = typer.Option(
        None,
        "--scene",
        "-s",
        help="Only generate the video for this scene"
    ),
    verbose: bool = VerboseOption,
) -> None:
    """Generate videos for scenes that have a keyframe, then wait for them."""
    setup_logging(verbose)

    try:
        config.validate_video_required()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    project = _load_project(project_file)
    engine = _build_engine(project)

    async def _videos():
        if scene_id:
            await engine.generate_video(scene_id)
        else:
            await engine.generate_all_videos()
        typer.echo(f"⏳ Waiting for {len(engine.pending_videos)} video(s)...")
        await engine.wait_for_videos()

    typer.echo("🎞️  Submitting video jobs")
    try:
        _run(engine, _videos())
    except (PreconditionError, ValueError, KeyError) as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    finally:
        engine.close()

    _save(engine, project_file)

    scenes = [s for s in engine.store.project.ordered_scenes() if s.video_status is not None]
    failed = [s.id for s in scenes if s.last_error]
    for scene in scenes:
        icon = "✅" if scene.video else "❌"
        typer.echo(f"   {icon} {scene.id}: {scene.video_status.value}")
    _print_failures(engine, failed)

    if failed:
        raise typer.Exit(1)


@app.command()
def concept(
    group_id: str = typer.Argument(
        ...,
        help="Scene group to generate environment concept art for"
    ),
    project_file: Path = ProjectOption,
    verbose: bool = VerboseOption,
) -> None:
    """Generate a people-free environment anchor image for a scene group."""
    setup_logging(verbose)
    project = _load_project(project_file)
    engine = _build_engine(project)

    typer.echo(f"🏞️  Generating concept art for group {group_id}")
    try:
        _run(engine, engine.generate_group_concept(group_id))
    except Exception as e:
        typer.echo(f"❌ Concept generation failed: {e}")
        raise typer.Exit(1)

    _save(engine, project_file)
    typer.echo(f"✅ Group {group_id} anchor image updated")


if __name__ == "__main__":
    app()
