"""CLI Application for PromptScript."""

import logging
from enum import Enum
from pathlib import Path
from typing import TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import AIProvider, AITaskType, Settings
from .exceptions import PromptScriptError
from .formatter import PromptFormatter
from .models import (
    BasicInfo,
    Character,
    Cinematography,
    ConnectingWord,
    Custom,
    DialogueType,
    EmotionalTone,
    EstablishingShot,
    EventType,
    Project,
    Scene,
    ScriptGenerationRequest,
    ShotMode,
    StoryStructure,
    TimelineEvent,
    VideoStyle,
    display_text,
)
from .service import ScriptService, build_generator
from .store import load_project, save_project

# Setup Typer and Console
app = typer.Typer(help="PromptScript CLI - Scripts to Video Generation Prompts")
console = Console()
logger = logging.getLogger("promptscript")

E = TypeVar("E", bound=Enum)

EVENT_TYPE_NAMES = {
    "dialogue": EventType.DIALOGUE,
    "action": EventType.CHARACTER_ACTION,
    "note": EventType.ACTING_NOTE,
    "environment": EventType.ENVIRONMENT_ACTION,
    "camera": EventType.CAMERA_ACTION,
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Build character-consistent prompts for AI video generators."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    return typer.Exit(code=1)


def _load(project_file: Path) -> Project:
    try:
        return load_project(project_file)
    except PromptScriptError as e:
        raise _fail(str(e)) from e


def _save(project: Project, project_file: Path) -> None:
    try:
        save_project(project, project_file)
    except PromptScriptError as e:
        raise _fail(str(e)) from e


def _get_service(
    provider: AIProvider | None,
    task: AITaskType,
    with_fallback: bool = False,
) -> ScriptService:
    """Get a script service for the chosen or best configured provider."""
    try:
        settings = Settings.from_env()
    except ValueError as e:
        raise _fail(str(e)) from e

    chosen = provider or settings.best_provider(task)
    if chosen is None:
        msg = (
            "No AI provider configured. Set OPENAI_API_KEY, "
            "ANTHROPIC_API_KEY or GEMINI_API_KEY."
        )
        raise _fail(msg)
    try:
        generator = build_generator(settings, chosen)
    except ValueError as e:
        raise _fail(str(e)) from e

    fallback = None
    if with_fallback:
        fallback_provider = settings.fallback_provider(chosen)
        if fallback_provider is not None:
            fallback = build_generator(settings, fallback_provider)

    logger.debug("Using %s for %s", chosen.display_name, task.value)
    return ScriptService(generator, fallback=fallback)


def _choice_or_custom(enum_cls: type[E], text: str, label: str) -> E | Custom:
    """Match a built-in option case-insensitively, else keep the text as custom."""
    wanted = text.strip().lower()
    for option in enum_cls:
        if option.value.lower() == wanted:
            return option
    try:
        return Custom(text=text)
    except ValidationError as e:
        raise _fail(f"{label} cannot be empty.") from e


def _scene_at(project: Project, number: int) -> Scene:
    if not 1 <= number <= len(project.scenes):
        raise _fail(f"Scene {number} does not exist.")
    return project.scenes[number - 1]


def _event_index(scene: Scene, position: int) -> int:
    if not 1 <= position <= len(scene.timeline):
        raise _fail(f"Event {position} does not exist.")
    return position - 1


def _safe_name(name: str) -> str:
    return (
        "".join([c for c in name if c.isalnum() or c in (" ", "-", "_")])
        .strip()
        .replace(" ", "_")
    )


@app.command()
def new(
    name: str = typer.Argument(..., help="Project name"),
    description: str = typer.Option("", help="Short project description"),
    style: str = typer.Option(
        VideoStyle.CINEMATIC.value,
        help="Video style; anything other than a built-in style is kept as custom",
    ),
    output: Path = typer.Option(
        None,
        help="Project file to create (defaults to <name>.json)",
    ),
) -> None:
    """Create an empty project file."""
    if not name.strip():
        raise _fail("Project name cannot be empty.")
    video_style = _choice_or_custom(VideoStyle, style, "Style")
    if output is None:
        output = Path(f"{_safe_name(name) or 'project'}.json")
    if output.exists():
        raise _fail(f"{output} already exists.")

    project = Project(name=name, description=description, video_style=video_style)
    _save(project, output)
    console.print(
        f"Created project [bold]{escape(name)}[/bold] at "
        f"[underline]{escape(str(output))}[/underline]",
    )


@app.command()
def show(
    project_file: Path = typer.Argument(..., help="Project file"),
    scene: int = typer.Option(None, help="List the timeline of this scene (1-based)"),
) -> None:
    """Summarize a project's characters and scenes, or one scene's timeline."""
    project = _load(project_file)

    if scene is not None:
        _show_timeline(project, scene)
        return

    console.print(
        Panel(
            f"[bold]Name:[/bold] {escape(project.name)}\n"
            f"[bold]Style:[/bold] {escape(display_text(project.video_style))}\n"
            f"[bold]Characters:[/bold] {len(project.characters)}\n"
            f"[bold]Scenes:[/bold] {len(project.scenes)}",
            title="Project",
            border_style="green",
        ),
    )

    if project.characters:
        table = Table(title="Characters")
        table.add_column("Name", style="bold")
        table.add_column("Age")
        table.add_column("Gender")
        for character in project.characters:
            table.add_row(
                escape(character.name),
                escape(character.age),
                escape(character.gender),
            )
        console.print(table)

    if project.scenes:
        table = Table(title="Scenes")
        table.add_column("#", justify="right")
        table.add_column("Title", style="bold")
        table.add_column("Emotion")
        table.add_column("Events", justify="right")
        for number, item in enumerate(project.scenes, start=1):
            table.add_row(
                str(number),
                escape(item.title),
                escape(display_text(item.emotion)),
                str(len(item.timeline)),
            )
        console.print(table)


def _show_timeline(project: Project, number: int) -> None:
    scene = _scene_at(project, number)
    table = Table(title=f"Scene {number}: {escape(scene.title)}")
    table.add_column("#", justify="right")
    table.add_column("Type")
    table.add_column("Character")
    table.add_column("Content")
    table.add_column("Then")
    for position, event in enumerate(scene.timeline, start=1):
        character = project.find_character(event.character_id)
        table.add_row(
            str(position),
            event.event_type.display_name,
            escape(character.name) if character else "",
            escape(event.content),
            escape(event.connecting_text),
        )
    console.print(table)


@app.command("add-character")
def add_character(
    project_file: Path = typer.Argument(..., help="Project file"),
    name: str = typer.Option(..., help="Character name"),
    age: str = typer.Option("", help="Age"),
    gender: str = typer.Option("", help="Gender"),
    ethnicity: str = typer.Option("", help="Ethnicity"),
    notes: str = typer.Option("", help="Consistency notes for the video model"),
) -> None:
    """Add a character to a project."""
    project = _load(project_file)
    if project.find_character_by_name(name):
        raise _fail(f"A character named '{name}' already exists.")

    character = Character(
        basic_info=BasicInfo(name=name, age=age, gender=gender, ethnicity=ethnicity),
        consistency_notes=notes,
    )
    project.characters.append(character)
    _save(project, project_file)
    console.print(f"Added character [bold]{escape(name)}[/bold]")


@app.command("add-scene")
def add_scene(
    project_file: Path = typer.Argument(..., help="Project file"),
    title: str = typer.Option(..., help="Scene title"),
    description: str = typer.Option("", help="What happens in the scene"),
    setting: str = typer.Option("", help="Where the scene takes place"),
    setting_image: Path = typer.Option(
        None,
        help="Photo of the location; its description becomes the setting",
    ),
    emotion: str = typer.Option(EmotionalTone.DRAMATIC.value, help="Emotional tone"),
    shot: str = typer.Option(
        EstablishingShot.WIDE_ANGLE.value,
        help="Establishing shot",
    ),
    multi_shot: bool = typer.Option(False, help="Allow cuts within the scene"),
    lighting: str = typer.Option("", help="Lighting"),
    shot_type: str = typer.Option("", help="Shot type"),
    camera_angle: str = typer.Option("", help="Camera angle"),
    lens: str = typer.Option("", help="Lens type"),
    focal_length: str = typer.Option("", help="Focal length"),
    camera_movement: str = typer.Option("", help="Camera movement"),
    color_grading: str = typer.Option("", help="Color grading"),
    provider: AIProvider = typer.Option(None, help="AI provider for --setting-image"),
) -> None:
    """Add an empty scene to the end of the project."""
    if not title.strip():
        raise _fail("Scene title cannot be empty.")
    if setting and setting_image is not None:
        raise _fail("Choose either --setting or --setting-image, not both.")
    if setting_image is not None and not setting_image.exists():
        raise _fail(f"File {setting_image} not found.")

    project = _load(project_file)
    scene = Scene(
        title=title,
        description=description,
        setting=setting,
        emotion=_choice_or_custom(EmotionalTone, emotion, "Emotion"),
        establishing_shot=_choice_or_custom(EstablishingShot, shot, "Shot"),
        shot_mode=ShotMode.MULTI if multi_shot else ShotMode.SINGLE,
        cinematography=Cinematography(
            lighting=lighting,
            shot_type=shot_type,
            camera_angle=camera_angle,
            lens_type=lens,
            focal_length=focal_length,
            camera_movement=camera_movement,
            color_grading=color_grading,
        ),
    )

    if setting_image is not None:
        service = _get_service(
            provider, AITaskType.SETTING_ANALYSIS, with_fallback=True,
        )
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task("Studying the location...", total=None)
                scene.setting = service.analyze_setting(setting_image)
                progress.update(task, completed=100)
        except PromptScriptError as e:
            raise _fail(str(e)) from e

    project.scenes.append(scene)
    _save(project, project_file)
    console.print(
        f"Added scene [bold]{len(project.scenes)}[/bold]: {escape(scene.title)}",
    )
    if scene.setting:
        console.print(f"[bold]Setting:[/bold] {escape(scene.setting)}")


@app.command("add-event")
def add_event(
    project_file: Path = typer.Argument(..., help="Project file"),
    scene_number: int = typer.Argument(..., help="Scene to add to (1-based)"),
    content: str = typer.Argument(..., help="Line, action, note or shot"),
    event_type: str = typer.Option(
        "action",
        "--type",
        help="dialogue, action, note, environment or camera",
    ),
    character: str = typer.Option(None, help="Character performing the event"),
    connector: str = typer.Option(
        ConnectingWord.THEN.value,
        help="Transition to the next event ('None' for no transition)",
    ),
    manner: str = typer.Option(
        None,
        help="How a dialogue line is delivered, e.g. whispers",
    ),
) -> None:
    """Append an event to a scene's timeline."""
    kind = EVENT_TYPE_NAMES.get(event_type.strip().lower())
    if kind is None:
        raise _fail(
            f"Unknown event type '{event_type}'. "
            f"Use one of: {', '.join(EVENT_TYPE_NAMES)}.",
        )
    if kind.requires_character and character is None:
        raise _fail(f"{kind.value} events need --character.")
    if not kind.requires_character and character is not None:
        raise _fail(f"{kind.value} events do not take --character.")
    if manner is not None and kind is not EventType.DIALOGUE:
        raise _fail("--manner only applies to dialogue.")

    project = _load(project_file)
    scene = _scene_at(project, scene_number)

    character_id = None
    if character is not None:
        found = project.find_character_by_name(character)
        if found is None:
            raise _fail(f"No character named '{character}'.")
        character_id = found.id

    event = TimelineEvent(
        event_type=kind,
        character_id=character_id,
        content=content,
        connecting_word=_choice_or_custom(ConnectingWord, connector, "Connector"),
    )
    if manner is not None:
        event.dialogue_type = _choice_or_custom(DialogueType, manner, "Manner")

    scene.add_timeline_event(event)
    _save(project, project_file)
    console.print(
        f"Added {kind.display_name.lower()} as event "
        f"[bold]{len(scene.timeline)}[/bold] of scene {scene_number}",
    )


@app.command("move-event")
def move_event(
    project_file: Path = typer.Argument(..., help="Project file"),
    scene_number: int = typer.Argument(..., help="Scene (1-based)"),
    source: int = typer.Argument(..., help="Current event position (1-based)"),
    destination: int = typer.Argument(..., help="New event position (1-based)"),
) -> None:
    """Move an event to a new position in a scene's timeline."""
    project = _load(project_file)
    scene = _scene_at(project, scene_number)
    start = _event_index(scene, source)
    end = _event_index(scene, destination)

    # The model takes an insertion index into the list before removal.
    scene.move_timeline_event(start, end + 1 if end > start else end)
    _save(project, project_file)
    console.print(f"Moved event {source} to position {destination}")


@app.command("remove-event")
def remove_event(
    project_file: Path = typer.Argument(..., help="Project file"),
    scene_number: int = typer.Argument(..., help="Scene (1-based)"),
    position: int = typer.Argument(..., help="Event position (1-based)"),
) -> None:
    """Remove an event from a scene's timeline."""
    project = _load(project_file)
    scene = _scene_at(project, scene_number)
    event = scene.timeline[_event_index(scene, position)]

    scene.remove_timeline_event(event.id)
    _save(project, project_file)
    console.print(f"Removed event {position} from scene {scene_number}")


@app.command()
def generate(
    project_file: Path = typer.Argument(..., help="Project file"),
    logline: str = typer.Argument(..., help="One-sentence story premise"),
    duration: int = typer.Option(60, help="Total video length in seconds"),
    scene_duration: int = typer.Option(10, help="Length of each scene in seconds"),
    structure: StoryStructure = typer.Option(
        StoryStructure.THREE_ACT,
        help="Story structure to follow",
    ),
    emotion: EmotionalTone = typer.Option(
        EmotionalTone.DRAMATIC,
        help="Primary emotional tone",
    ),
    setting: str = typer.Option("", help="Setting applied to every scene"),
    genre: list[str] = typer.Option([], help="Genre (repeatable)"),
    cinematography: str = typer.Option("", help="Free-form cinematography notes"),
    provider: AIProvider = typer.Option(None, help="AI provider to use"),
) -> None:
    """Generate new scenes from a logline and append them to the project."""
    if duration <= 0 or scene_duration <= 0:
        raise _fail("Durations must be positive.")

    project = _load(project_file)
    service = _get_service(provider, AITaskType.SCRIPT_GENERATION)
    request = ScriptGenerationRequest(
        logline=logline,
        duration=duration,
        scene_duration=scene_duration,
        video_style=project.video_style,
        story_structure=structure,
        primary_emotion=emotion,
        genres=genre,
        setting=setting,
        cinematography_notes=cinematography,
        characters=project.characters,
    )

    console.rule("[bold blue]Script Generation")
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Writing scenes...", total=None)
            scenes = service.generate_script(request)
            progress.update(task, completed=100)
    except PromptScriptError as e:
        raise _fail(str(e)) from e

    first_number = len(project.scenes) + 1
    project.scenes.extend(scenes)
    _save(project, project_file)

    console.print(
        Panel(
            "\n".join(
                f"[bold]{n}.[/bold] {escape(s.title)} ({len(s.timeline)} events)"
                for n, s in enumerate(scenes, start=first_number)
            )
            or "No scenes could be parsed from the response.",
            title="Script Generated",
            border_style="green",
        ),
    )


@app.command("import-script")
def import_script(
    project_file: Path = typer.Argument(..., help="Project file"),
    script_file: Path = typer.Argument(..., help="Script text to break down"),
    provider: AIProvider = typer.Option(None, help="AI provider to use"),
) -> None:
    """Import an existing script's characters and scenes into the project."""
    if not script_file.exists():
        raise _fail(f"File {script_file} not found.")

    project = _load(project_file)
    service = _get_service(provider, AITaskType.SCRIPT_PARSING)
    script_text = script_file.read_text(encoding="utf-8")

    console.rule("[bold blue]Script Import")
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Reading script...", total=None)
            result = service.parse_script(script_text)
            progress.update(task, completed=100)
    except PromptScriptError as e:
        raise _fail(str(e)) from e

    project.characters.extend(result.characters)
    project.scenes.extend(result.scenes)
    _save(project, project_file)

    console.print(
        Panel(
            f"[bold]Characters:[/bold] {len(result.characters)}\n"
            f"[bold]Scenes:[/bold] {len(result.scenes)}",
            title="Script Imported",
            border_style="green",
        ),
    )


@app.command("analyze-character")
def analyze_character(
    project_file: Path = typer.Argument(..., help="Project file"),
    image: Path = typer.Argument(..., help="Reference photo of the character"),
    name: str = typer.Option("", help="Name for the new character"),
    provider: AIProvider = typer.Option(None, help="AI provider to use"),
) -> None:
    """Create a character from a reference photo."""
    if not image.exists():
        raise _fail(f"File {image} not found.")

    project = _load(project_file)
    service = _get_service(provider, AITaskType.CHARACTER_ANALYSIS)

    console.rule("[bold purple]Character Analysis")
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Studying the photo...", total=None)
            character = service.analyze_character(image, name=name)
            progress.update(task, completed=100)
    except PromptScriptError as e:
        raise _fail(str(e)) from e

    project.characters.append(character)
    _save(project, project_file)

    console.print(
        Panel(
            escape(PromptFormatter().format_character(character)),
            title="Character Added",
            border_style="green",
        ),
    )


@app.command()
def export(
    project_file: Path = typer.Argument(..., help="Project file"),
    scene: int = typer.Option(None, help="Export only this scene (1-based)"),
    character: str = typer.Option(None, help="Export only this character"),
    detailed: bool = typer.Option(False, help="Use the long-form scene layout"),
    output: Path = typer.Option(None, help="Write the prompt to this file"),
) -> None:
    """Export the project, a scene or a character as a prompt."""
    if scene is not None and character is not None:
        raise _fail("Choose either --scene or --character, not both.")
    if detailed and character is not None:
        raise _fail("--detailed applies to scenes, not --character.")

    project = _load(project_file)
    formatter = PromptFormatter()

    if character is not None:
        found = project.find_character_by_name(character)
        if found is None:
            raise _fail(f"No character named '{character}'.")
        text = formatter.format_character(found)
    elif scene is not None:
        selected = _scene_at(project, scene)
        render = formatter.format_detailed if detailed else formatter.format_scene
        text = render(
            selected,
            project.characters_for_scene(selected),
            project.video_style,
        )
    else:
        text = formatter.format_project(project, detailed=detailed)

    if output is None:
        console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    console.print(f"Prompt saved to: [underline]{escape(str(output.absolute()))}[/underline]")


if __name__ == "__main__":
    app()
