from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from promptscript.cli import app
from promptscript.config import AIProvider
from promptscript.exceptions import ScriptGenerationError, SettingAnalysisError
from promptscript.models import (
    BasicInfo,
    Character,
    ConnectingWord,
    Custom,
    DialogueType,
    EmotionalTone,
    EventType,
    Project,
    Scene,
    ScriptParseResult,
    ShotMode,
    TimelineEvent,
)
from promptscript.store import load_project, save_project

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in (
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "CLAUDE_API_KEY",
        "GEMINI_API_KEY",
        "PROMPTSCRIPT_QUALITY_VS_COST",
    ):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def mock_build_generator():
    with patch("promptscript.cli.build_generator") as mock:
        yield mock


@pytest.fixture
def mock_service():
    with patch("promptscript.cli.ScriptService") as mock:
        yield mock


@pytest.fixture
def project_file(tmp_path):
    ana = Character(basic_info=BasicInfo(name="Ana", age="30", gender="female"))
    scene = Scene(
        title="Intro",
        setting="Park",
        timeline=[
            TimelineEvent(
                event_type=EventType.DIALOGUE,
                character_id=ana.id,
                content="Hello there",
            ),
        ],
    )
    project = Project(name="Demo", characters=[ana], scenes=[scene])
    return save_project(project, tmp_path / "demo.json")


def test_new_project(tmp_path) -> None:
    result = runner.invoke(app, ["new", "My Film!", "--style", "Noir"])

    assert result.exit_code == 0
    assert "Created project" in result.stdout
    project = load_project(tmp_path / "My_Film.json")
    assert project.name == "My Film!"
    assert project.video_style == Custom(text="Noir")


def test_new_project_builtin_style(tmp_path) -> None:
    output = tmp_path / "anime.json"
    result = runner.invoke(app, ["new", "Toon", "--style", "Anime", "--output", str(output)])

    assert result.exit_code == 0
    assert load_project(output).video_style.value == "Anime"


def test_new_project_already_exists(project_file) -> None:
    result = runner.invoke(app, ["new", "Demo", "--output", str(project_file)])
    assert result.exit_code == 1
    assert "already exists" in result.stdout


def test_show(project_file) -> None:
    result = runner.invoke(app, ["show", str(project_file)])
    assert result.exit_code == 0
    assert "Demo" in result.stdout
    assert "Ana" in result.stdout
    assert "Intro" in result.stdout


def test_show_missing_file() -> None:
    result = runner.invoke(app, ["show", "nonexistent.json"])
    assert result.exit_code == 1
    assert "Cannot read project file" in result.stdout


def test_add_character(project_file) -> None:
    result = runner.invoke(
        app,
        ["add-character", str(project_file), "--name", "Ben", "--age", "40"],
    )

    assert result.exit_code == 0
    project = load_project(project_file)
    assert [c.name for c in project.characters] == ["Ana", "Ben"]
    assert project.characters[1].age == "40"


def test_add_character_duplicate(project_file) -> None:
    result = runner.invoke(app, ["add-character", str(project_file), "--name", "Ana"])
    assert result.exit_code == 1
    assert "already exists" in result.stdout


def test_export_project(project_file) -> None:
    result = runner.invoke(app, ["export", str(project_file)])

    assert result.exit_code == 0
    assert "--- SCENE 1: Intro ---" in result.stdout
    assert 'Ana (30 year old; female) says "Hello there"' in result.stdout
    assert "(Keep character consistency)" in result.stdout


def test_export_scene(project_file) -> None:
    result = runner.invoke(app, ["export", str(project_file), "--scene", "1"])

    assert result.exit_code == 0
    assert result.stdout.startswith("Style: Cinematic\nSetting: Park\n")
    assert "--- SCENE" not in result.stdout


def test_export_scene_detailed(project_file) -> None:
    result = runner.invoke(
        app, ["export", str(project_file), "--scene", "1", "--detailed"],
    )
    assert result.exit_code == 0
    assert 'Says: "Hello there".' in result.stdout


def test_export_scene_out_of_range(project_file) -> None:
    result = runner.invoke(app, ["export", str(project_file), "--scene", "3"])
    assert result.exit_code == 1
    assert "Scene 3 does not exist" in result.stdout


def test_export_character(project_file) -> None:
    result = runner.invoke(app, ["export", str(project_file), "--character", "Ana"])
    assert result.exit_code == 0
    assert "Ana: 30 year old; female" in result.stdout

    result = runner.invoke(app, ["export", str(project_file), "--character", "Zed"])
    assert result.exit_code == 1
    assert "No character named 'Zed'" in result.stdout


def test_export_to_file(project_file, tmp_path) -> None:
    output = tmp_path / "out" / "prompt.txt"
    result = runner.invoke(app, ["export", str(project_file), "--output", str(output)])

    assert result.exit_code == 0
    assert "Prompt saved to" in result.stdout
    assert output.read_text().startswith("--- SCENE 1: Intro ---")


def test_generate(isolated_env, project_file, mock_build_generator, mock_service) -> None:
    isolated_env.setenv("GEMINI_API_KEY", "key")
    mock_instance = mock_service.return_value
    mock_instance.generate_script.return_value = [
        Scene(title="Arrival"),
        Scene(title="Departure"),
    ]

    result = runner.invoke(
        app,
        [
            "generate",
            str(project_file),
            "Two friends reunite",
            "--duration",
            "20",
            "--genre",
            "Drama",
            "--genre",
            "Comedy",
        ],
    )

    assert result.exit_code == 0
    assert "Script Generated" in result.stdout
    assert mock_build_generator.call_args.args[1] is AIProvider.GEMINI
    request = mock_instance.generate_script.call_args.args[0]
    assert request.logline == "Two friends reunite"
    assert request.genres == ["Drama", "Comedy"]
    assert [c.name for c in request.characters] == ["Ana"]
    project = load_project(project_file)
    assert [s.title for s in project.scenes] == ["Intro", "Arrival", "Departure"]


def test_generate_explicit_provider(
    isolated_env, project_file, mock_build_generator, mock_service,
) -> None:
    isolated_env.setenv("OPENAI_API_KEY", "key")
    mock_service.return_value.generate_script.return_value = []

    result = runner.invoke(
        app, ["generate", str(project_file), "Plot", "--provider", "openai"],
    )

    assert result.exit_code == 0
    assert mock_build_generator.call_args.args[1] is AIProvider.OPENAI


def test_generate_without_provider(project_file) -> None:
    result = runner.invoke(app, ["generate", str(project_file), "Plot"])
    assert result.exit_code == 1
    assert "No AI provider configured" in result.stdout


def test_generate_missing_key_for_chosen_provider(project_file) -> None:
    result = runner.invoke(
        app, ["generate", str(project_file), "Plot", "--provider", "claude"],
    )
    assert result.exit_code == 1
    assert "API Key is missing" in result.stdout


def test_generate_failure(isolated_env, project_file, mock_build_generator, mock_service) -> None:
    isolated_env.setenv("GEMINI_API_KEY", "key")
    mock_service.return_value.generate_script.side_effect = ScriptGenerationError(
        "Failed to generate script: quota",
    )

    result = runner.invoke(app, ["generate", str(project_file), "Plot"])

    assert result.exit_code == 1
    assert "Failed to generate script" in result.stdout
    assert len(load_project(project_file).scenes) == 1


def test_import_script(
    isolated_env, project_file, tmp_path, mock_build_generator, mock_service,
) -> None:
    isolated_env.setenv("ANTHROPIC_API_KEY", "key")
    script = tmp_path / "script.txt"
    script.write_text("INT. KITCHEN - DAY\nBEN: Morning.")
    ben = Character(basic_info=BasicInfo(name="Ben"))
    mock_service.return_value.parse_script.return_value = ScriptParseResult(
        characters=[ben],
        scenes=[Scene(title="Kitchen")],
    )

    result = runner.invoke(app, ["import-script", str(project_file), str(script)])

    assert result.exit_code == 0
    assert "Script Imported" in result.stdout
    assert mock_build_generator.call_args.args[1] is AIProvider.CLAUDE
    mock_service.return_value.parse_script.assert_called_once_with(
        "INT. KITCHEN - DAY\nBEN: Morning.",
    )
    project = load_project(project_file)
    assert [c.name for c in project.characters] == ["Ana", "Ben"]
    assert project.scenes[-1].title == "Kitchen"


def test_import_script_missing_file(project_file) -> None:
    result = runner.invoke(app, ["import-script", str(project_file), "nope.txt"])
    assert result.exit_code == 1
    assert "File nope.txt not found" in result.stdout


def test_analyze_character(
    isolated_env, project_file, tmp_path, mock_build_generator, mock_service,
) -> None:
    isolated_env.setenv("OPENAI_API_KEY", "key")
    image = tmp_path / "ben.jpg"
    image.write_bytes(b"jpg")
    mock_service.return_value.analyze_character.return_value = Character(
        basic_info=BasicInfo(name="Ben", age="40"),
    )

    result = runner.invoke(
        app, ["analyze-character", str(project_file), str(image), "--name", "Ben"],
    )

    assert result.exit_code == 0
    assert "Character Added" in result.stdout
    assert mock_build_generator.call_args.args[1] is AIProvider.OPENAI
    mock_service.return_value.analyze_character.assert_called_once_with(image, name="Ben")
    assert load_project(project_file).characters[-1].name == "Ben"


def test_verbose_flag(project_file) -> None:
    result = runner.invoke(app, ["--verbose", "show", str(project_file)])
    assert result.exit_code == 0


def test_new_project_empty_style() -> None:
    result = runner.invoke(app, ["new", "Toon", "--style", ""])
    assert result.exit_code == 1
    assert "Style cannot be empty." in result.stdout


def test_show_escapes_markup(tmp_path) -> None:
    ana = Character(basic_info=BasicInfo(name="[bold]Ana"))
    project = Project(name="Act [/] One", characters=[ana], scenes=[Scene(title="[red]Intro")])
    path = save_project(project, tmp_path / "act.json")

    result = runner.invoke(app, ["show", str(path)])

    assert result.exit_code == 0
    assert "Act [/] One" in result.stdout
    assert "[bold]Ana" in result.stdout
    assert "[red]Intro" in result.stdout


def test_show_scene_timeline(project_file) -> None:
    result = runner.invoke(app, ["show", str(project_file), "--scene", "1"])
    assert result.exit_code == 0
    assert "Hello there" in result.stdout
    assert "Ana" in result.stdout

    result = runner.invoke(app, ["show", str(project_file), "--scene", "2"])
    assert result.exit_code == 1
    assert "Scene 2 does not exist" in result.stdout


def test_generate_bad_quality_setting(isolated_env, project_file) -> None:
    isolated_env.setenv("GEMINI_API_KEY", "key")
    isolated_env.setenv("PROMPTSCRIPT_QUALITY_VS_COST", "high")

    result = runner.invoke(app, ["generate", str(project_file), "Plot"])

    assert result.exit_code == 1
    assert "PROMPTSCRIPT_QUALITY_VS_COST" in result.stdout
    assert isinstance(result.exception, SystemExit)


def test_add_scene(project_file) -> None:
    result = runner.invoke(
        app,
        [
            "add-scene",
            str(project_file),
            "--title",
            "Chase",
            "--setting",
            "Alley",
            "--emotion",
            "tense",
            "--shot",
            "Dutch tilt",
            "--multi-shot",
            "--lighting",
            "Neon",
        ],
    )

    assert result.exit_code == 0
    assert "Added scene 2" in result.stdout
    scene = load_project(project_file).scenes[-1]
    assert scene.title == "Chase"
    assert scene.setting == "Alley"
    assert scene.emotion is EmotionalTone.TENSE
    assert scene.establishing_shot == Custom(text="Dutch tilt")
    assert scene.shot_mode is ShotMode.MULTI
    assert scene.cinematography.lighting == "Neon"


def test_add_scene_from_setting_image(
    isolated_env, project_file, tmp_path, mock_build_generator, mock_service,
) -> None:
    isolated_env.setenv("OPENAI_API_KEY", "key")
    isolated_env.setenv("ANTHROPIC_API_KEY", "key")
    image = tmp_path / "alley.jpg"
    image.write_bytes(b"jpg")
    mock_service.return_value.analyze_setting.return_value = "A neon-lit alley at night."

    result = runner.invoke(
        app,
        ["add-scene", str(project_file), "--title", "Chase", "--setting-image", str(image)],
    )

    assert result.exit_code == 0
    providers = [c.args[1] for c in mock_build_generator.call_args_list]
    assert providers == [AIProvider.OPENAI, AIProvider.CLAUDE]
    assert mock_service.call_args.kwargs["fallback"] is mock_build_generator.return_value
    mock_service.return_value.analyze_setting.assert_called_once_with(image)
    assert load_project(project_file).scenes[-1].setting == "A neon-lit alley at night."


def test_add_scene_setting_image_failure(
    isolated_env, project_file, tmp_path, mock_build_generator, mock_service,
) -> None:
    isolated_env.setenv("OPENAI_API_KEY", "key")
    image = tmp_path / "alley.jpg"
    image.write_bytes(b"jpg")
    mock_service.return_value.analyze_setting.side_effect = SettingAnalysisError(
        "Failed to analyze setting image: quota",
    )

    result = runner.invoke(
        app,
        ["add-scene", str(project_file), "--title", "Chase", "--setting-image", str(image)],
    )

    assert result.exit_code == 1
    assert "Failed to analyze setting image" in result.stdout
    assert mock_service.call_args.kwargs["fallback"] is None
    assert len(load_project(project_file).scenes) == 1


def test_add_scene_setting_and_image(project_file, tmp_path) -> None:
    image = tmp_path / "alley.jpg"
    image.write_bytes(b"jpg")
    result = runner.invoke(
        app,
        [
            "add-scene",
            str(project_file),
            "--title",
            "Chase",
            "--setting",
            "Alley",
            "--setting-image",
            str(image),
        ],
    )
    assert result.exit_code == 1
    assert "not both" in result.stdout


def test_add_events_and_export(project_file) -> None:
    result = runner.invoke(
        app,
        [
            "add-event",
            str(project_file),
            "1",
            "Run!",
            "--type",
            "dialogue",
            "--character",
            "Ana",
            "--manner",
            "whispers",
            "--connector",
            "suddenly",
        ],
    )
    assert result.exit_code == 0
    assert "event 2 of scene 1" in result.stdout

    result = runner.invoke(
        app,
        [
            "add-event",
            str(project_file),
            "1",
            "Thunder rolls",
            "--type",
            "environment",
            "--connector",
            "A beat later",
        ],
    )
    assert result.exit_code == 0

    timeline = load_project(project_file).scenes[0].timeline
    assert timeline[1].character_id == load_project(project_file).characters[0].id
    assert timeline[1].dialogue_type is DialogueType.WHISPERS
    assert timeline[1].connecting_word is ConnectingWord.SUDDENLY
    assert timeline[2].connecting_word == Custom(text="A beat later")

    result = runner.invoke(app, ["export", str(project_file), "--scene", "1"])
    assert 'Ana (30) whispers "Run!"\nSuddenly\n\nThunder rolls\n' in result.stdout


def test_add_event_custom_manner(project_file) -> None:
    result = runner.invoke(
        app,
        [
            "add-event",
            str(project_file),
            "1",
            "La la",
            "--type",
            "dialogue",
            "--character",
            "Ana",
            "--manner",
            "hums",
        ],
    )
    assert result.exit_code == 0
    assert load_project(project_file).scenes[0].timeline[-1].dialogue_type == Custom(text="hums")


@pytest.mark.parametrize(
    ("options", "message"),
    [
        (["--type", "song"], "Unknown event type 'song'"),
        (["--type", "dialogue"], "Dialogue events need --character"),
        (["--type", "camera", "--character", "Ana"], "do not take --character"),
        (["--character", "Zed"], "No character named 'Zed'"),
        (["--character", "Ana", "--manner", "whispers"], "--manner only applies to dialogue"),
        (["--character", "Ana", "--connector", " "], "Connector cannot be empty."),
    ],
)
def test_add_event_errors(project_file, options, message) -> None:
    result = runner.invoke(app, ["add-event", str(project_file), "1", "waves", *options])

    assert result.exit_code == 1
    assert message in result.stdout
    assert len(load_project(project_file).scenes[0].timeline) == 1


def test_add_event_missing_scene(project_file) -> None:
    result = runner.invoke(
        app, ["add-event", str(project_file), "4", "Rain", "--type", "environment"],
    )
    assert result.exit_code == 1
    assert "Scene 4 does not exist" in result.stdout


@pytest.fixture
def abc_project(tmp_path):
    scene = Scene(
        timeline=[
            TimelineEvent(event_type=EventType.ENVIRONMENT_ACTION, content=content)
            for content in ("a", "b", "c")
        ],
    )
    return save_project(Project(name="Order", scenes=[scene]), tmp_path / "order.json")


def _contents(path) -> list[str]:
    return [e.content for e in load_project(path).scenes[0].timeline]


def test_move_event(abc_project) -> None:
    result = runner.invoke(app, ["move-event", str(abc_project), "1", "1", "3"])
    assert result.exit_code == 0
    assert _contents(abc_project) == ["b", "c", "a"]

    result = runner.invoke(app, ["move-event", str(abc_project), "1", "3", "1"])
    assert result.exit_code == 0
    assert _contents(abc_project) == ["a", "b", "c"]

    result = runner.invoke(app, ["move-event", str(abc_project), "1", "2", "2"])
    assert result.exit_code == 0
    assert _contents(abc_project) == ["a", "b", "c"]


def test_move_event_out_of_range(abc_project) -> None:
    result = runner.invoke(app, ["move-event", str(abc_project), "1", "1", "4"])
    assert result.exit_code == 1
    assert "Event 4 does not exist" in result.stdout
    assert _contents(abc_project) == ["a", "b", "c"]


def test_remove_event(abc_project) -> None:
    result = runner.invoke(app, ["remove-event", str(abc_project), "1", "2"])
    assert result.exit_code == 0
    assert _contents(abc_project) == ["a", "c"]

    result = runner.invoke(app, ["remove-event", str(abc_project), "1", "3"])
    assert result.exit_code == 1
    assert "Event 3 does not exist" in result.stdout


def test_export_project_detailed(project_file) -> None:
    result = runner.invoke(app, ["export", str(project_file), "--detailed"])

    assert result.exit_code == 0
    assert result.stdout.startswith("--- SCENE 1: Intro ---\n\nVisual Style: Cinematic.\n")
    assert 'Says: "Hello there".' in result.stdout


def test_export_detailed_character(project_file) -> None:
    result = runner.invoke(
        app, ["export", str(project_file), "--character", "Ana", "--detailed"],
    )
    assert result.exit_code == 1
    assert "--detailed applies to scenes" in result.stdout
