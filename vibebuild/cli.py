"""
Command-line interface for VibeBuild.

Runs a local single-player host: one console player, an in-process scratch
world and the same pipeline runner a server would use.

Usage:
    vibebuild "a small stone watchtower with two floors"
    vibebuild "a 4-bit binary counter" --profile redstone --verbose
    vibebuild "castle like this" --image ./castle.png --output ./builds --confirm
"""

import logging
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from vibebuild.agents import make_build_profile, make_redstone_profile
from vibebuild.chat import ConsoleActor
from vibebuild.commands import CommandHandler, block_position
from vibebuild.config import ConfigStore
from vibebuild.context import PipelineContext
from vibebuild.models import ImageData
from vibebuild.pipeline import SharedPipelineRunner
from vibebuild.session import Phase, SessionRegistry
from vibebuild.tools import BuildToolExecutor, RedstoneToolExecutor, SchematicExporter, VoxelWorld
from vibebuild.world import BuildWorld
from vibebuild.world_thread import WorldThread


# Load environment variables from .env file (for ANTHROPIC_API_KEY).
load_dotenv()


console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )
    # The HTTP stack is noisy at debug level.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)


@click.command()
@click.argument("prompt")
@click.option(
    "--profile", "-p",
    type=click.Choice(["build", "redstone"]),
    default="build",
    help="Which builder to use."
)
@click.option(
    "--image", "-i",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Reference image for the build (build profile only)."
)
@click.option(
    "--model", "-m",
    default=None,
    help="Claude model to use (defaults to the configured model)."
)
@click.option(
    "--output", "-o",
    type=click.Path(path_type=Path),
    default=Path("./output"),
    help="Output directory for schematic files."
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show detailed progress and debug info."
)
@click.option(
    "--confirm",
    is_flag=True,
    help="Accept the reviewed build and place it at the player's position."
)
def main(prompt: str, profile: str, image: Path | None, model: str | None, output: Path,
         verbose: bool, confirm: bool):
    """
    Build something from a natural language description.

    PROMPT: Description of the build (e.g., "a small stone tower")
    """
    _configure_logging(verbose)

    config = ConfigStore()
    config.load()
    if model:
        config.override_model(model)

    console.print("[bold]VibeBuild[/bold]")
    console.print(f"Prompt: {prompt}")
    console.print(f"Profile: {profile}")
    console.print(f"Model: {config.model}")
    console.print()

    image_data = None
    if image is not None:
        try:
            image_data = ImageData.from_path(image)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--image")

    # Local host: one scratch world shared by both tool executors.
    voxels = VoxelWorld()
    build_executor = BuildToolExecutor(voxels)
    redstone_executor = RedstoneToolExecutor(voxels, build_executor)
    profiles = {
        "build": make_build_profile(build_executor),
        "redstone": make_redstone_profile(redstone_executor),
    }

    with WorldThread() as world_thread:
        context = PipelineContext(
            world_thread=world_thread,
            sessions=SessionRegistry(),
            config=config,
            build_world=BuildWorld(voxels),
            exporter=SchematicExporter(voxels, output),
        )
        runner = SharedPipelineRunner(context, max_workers=1)
        commands = CommandHandler(context, runner, profiles)

        actor = ConsoleActor(name="player", console=console)
        session = world_thread.call(lambda: context.sessions.connect(actor), context.setup_timeout)

        if not commands.prompt(actor, prompt, profile=profile, image=image_data):
            runner.shutdown()
            raise click.exceptions.Exit(1)

        try:
            runner.shutdown(wait=True)
        except KeyboardInterrupt:
            console.print("[yellow]Cancelling...[/yellow]")
            commands.cancel(actor)
            runner.shutdown(wait=True)

        if session.phase != Phase.REVIEWING:
            raise click.exceptions.Exit(1)

        if session.last_export_path is not None:
            console.print(f"[green]✓[/green] Saved schematic to {session.last_export_path}")

        if confirm:
            home = VoxelWorld()
            commands.confirm(actor)
            commands.place(actor, block_position(actor.position), home)
            console.print(f"[green]✓[/green] Placed {len(home)} blocks at {block_position(actor.position)}")


if __name__ == "__main__":
    main()
