"""Line-marker script parsing.

Generated scripts arrive as loosely structured text::

    SCENE 1:
    TITLE: Intro
    EMOTION: Tense
    TIMELINE_EVENTS:
    CHARACTER_DIALOGUE: Ana: "Hello there"
    CAMERA_ACTION: slowly pushes in

The text comes from a non-deterministic model, so parsing is best effort:
unknown lines are dropped, unknown enum values fall back to defaults and
nothing is ever raised.
"""

import logging
import re
from collections.abc import Sequence

from .models import (
    Character,
    EmotionalTone,
    EstablishingShot,
    EventType,
    Scene,
    TimelineEvent,
    enum_from_text,
)

logger = logging.getLogger(__name__)

SCENE_MARKER = re.compile(r"^.*\bSCENE[ \t]+\d+[ \t]*:.*$", re.MULTILINE)
TIMELINE_MARKER = "TIMELINE_EVENTS:"

TITLE_PREFIX = "TITLE:"
DESCRIPTION_PREFIX = "DESCRIPTION:"
EMOTION_PREFIX = "EMOTION:"
ESTABLISHING_SHOT_PREFIX = "ESTABLISHING_SHOT:"

# Checked in order; the first matching prefix wins.
EVENT_PREFIXES: tuple[tuple[str, EventType], ...] = (
    ("CHARACTER_DIALOGUE:", EventType.DIALOGUE),
    ("CHARACTER_ACTION:", EventType.CHARACTER_ACTION),
    ("ACTING_NOTE:", EventType.ACTING_NOTE),
    ("ENVIRONMENT_ACTION:", EventType.ENVIRONMENT_ACTION),
    ("CAMERA_ACTION:", EventType.CAMERA_ACTION),
)


def _strip_prefix(line: str, prefix: str) -> str:
    return line[len(prefix):].strip()


def parse_timeline_event(
    line: str,
    characters: Sequence[Character],
) -> TimelineEvent | None:
    """Parse a single event line.

    Args:
        line: One line from a ``TIMELINE_EVENTS:`` section.
        characters: Roster used to resolve character names (exact match).

    Returns:
        TimelineEvent | None: The event, or None if no event prefix matches.

    """
    line = line.strip()
    for prefix, event_type in EVENT_PREFIXES:
        if not line.startswith(prefix):
            continue

        content = _strip_prefix(line, prefix)
        character_id = None

        if event_type.requires_character:
            name, colon, remainder = content.partition(":")
            if colon:
                name = name.strip()
                content = remainder.strip()
                character = next((c for c in characters if c.name == name), None)
                if character is None:
                    logger.debug("No character named %r in roster", name)
                else:
                    character_id = character.id

        if event_type is EventType.DIALOGUE:
            content = content.strip('"')

        return TimelineEvent(
            event_type=event_type,
            character_id=character_id,
            content=content,
        )
    return None


def _parse_scene_block(block: str, characters: Sequence[Character]) -> Scene:
    scene = Scene()
    parsing_timeline = False

    for raw_line in block.splitlines():
        line = raw_line.strip()

        if line.startswith(TITLE_PREFIX):
            parsing_timeline = False
            scene.title = _strip_prefix(line, TITLE_PREFIX)
        elif line.startswith(DESCRIPTION_PREFIX):
            parsing_timeline = False
            scene.description = _strip_prefix(line, DESCRIPTION_PREFIX)
        elif line.startswith(EMOTION_PREFIX):
            parsing_timeline = False
            scene.emotion = enum_from_text(
                EmotionalTone,
                _strip_prefix(line, EMOTION_PREFIX),
                EmotionalTone.DRAMATIC,
            )
        elif line.startswith(ESTABLISHING_SHOT_PREFIX):
            parsing_timeline = False
            scene.establishing_shot = enum_from_text(
                EstablishingShot,
                _strip_prefix(line, ESTABLISHING_SHOT_PREFIX),
                EstablishingShot.WIDE_ANGLE,
            )
        elif line.startswith(TIMELINE_MARKER):
            parsing_timeline = True
        elif parsing_timeline and line:
            event = parse_timeline_event(line, characters)
            if event is None:
                logger.debug("Discarding unrecognized timeline line: %r", line)
            else:
                scene.timeline.append(event)

    return scene


def parse_script_text(
    text: str,
    characters: Sequence[Character],
    setting: str = "",
) -> list[Scene]:
    """Parse a generated script into scenes.

    Every scene gets ``setting`` as its setting and the whole roster as its
    selected characters, whether or not the timeline references them.

    Args:
        text: Script text in line-marker format.
        characters: Roster used to resolve character names.
        setting: Setting to apply to every parsed scene.

    Returns:
        list[Scene]: One scene per ``SCENE <n>:`` marker, in order.

    """
    # Anything before the first marker is preamble.
    blocks = SCENE_MARKER.split(text)[1:]
    roster_ids = [c.id for c in characters]

    scenes = []
    for block in blocks:
        scene = _parse_scene_block(block, characters)
        scene.setting = setting
        scene.selected_characters = list(roster_ids)
        scenes.append(scene)

    logger.debug("Parsed %d scene(s) from script text", len(scenes))
    return scenes
