"""JSON-mode script import.

Used when an existing script is imported rather than generated. The model is
asked for pure JSON, but responses are frequently wrapped in code fences or
surrounded by prose, so the JSON is located first and then decoded.
"""

import json
import logging
import re

from pydantic import ValidationError

from .exceptions import CharacterAnalysisError, ScriptParsingError
from .models import (
    Character,
    EmotionalTone,
    EstablishingShot,
    EventType,
    Scene,
    ScriptParseResult,
    TimelineEvent,
    enum_from_text,
)
from .schemas import CharacterAnalysisResult, ParsedScript

logger = logging.getLogger(__name__)

# Tried in order; the first candidate that is valid JSON wins.
_JSON_PATTERNS = (
    re.compile(r"```json\s*(.*?)\s*```", re.DOTALL),
    re.compile(r"```\s*(.*?)\s*```", re.DOTALL),
    re.compile(r"\{.*\}", re.DOTALL),
)

EVENT_TYPE_LOOKUP = {
    "dialogue": EventType.DIALOGUE,
    "characteraction": EventType.CHARACTER_ACTION,
    "actingnote": EventType.ACTING_NOTE,
    "environmentaction": EventType.ENVIRONMENT_ACTION,
    "cameraaction": EventType.CAMERA_ACTION,
}


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except (ValueError, RecursionError):
        return False
    return True


def extract_json(text: str) -> str | None:
    """Find the JSON document in a model response.

    Fenced ```json blocks are tried first, then any fenced block, then the
    widest brace-delimited span, then the whole string.

    Returns:
        str | None: The JSON text, or None if nothing parses.

    """
    for pattern in _JSON_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        candidate = (match.group(1) if pattern.groups else match.group(0)).strip()
        if _is_json(candidate):
            return candidate
        logger.debug("Candidate for %s is not valid JSON", pattern.pattern)

    stripped = text.strip()
    if _is_json(stripped):
        return stripped
    return None


def event_type_from_text(value: str | None) -> EventType:
    key = "".join((value or "").lower().split())
    event_type = EVENT_TYPE_LOOKUP.get(key)
    if event_type is None:
        logger.debug("Unknown event type %r, using Character Action", value)
        return EventType.CHARACTER_ACTION
    return event_type


def convert_parsed_script(parsed: ParsedScript) -> ScriptParseResult:
    """Map a decoded script onto new characters and scenes.

    Character names in events resolve only against the characters created
    from the same response.
    """
    characters = []
    for parsed_char in parsed.characters:
        character = Character()
        character.basic_info.name = parsed_char.name or "Unknown"
        character.basic_info.age = parsed_char.age or ""
        character.basic_info.gender = parsed_char.gender or ""
        character.basic_info.ethnicity = parsed_char.ethnicity or ""
        character.facial_features.distinctive_features = parsed_char.description or ""
        characters.append(character)

    ids_by_name = {}
    for character in characters:
        ids_by_name.setdefault(character.name, character.id)

    scenes = []
    for index, parsed_scene in enumerate(parsed.scenes, start=1):
        scene = Scene(
            title=parsed_scene.title or f"Scene {index}",
            description=parsed_scene.description or "",
            setting=parsed_scene.setting or "",
            emotion=enum_from_text(
                EmotionalTone, parsed_scene.emotion, EmotionalTone.DRAMATIC,
            ),
            establishing_shot=enum_from_text(
                EstablishingShot,
                parsed_scene.establishing_shot,
                EstablishingShot.WIDE_ANGLE,
            ),
        )
        for parsed_event in parsed_scene.timeline_events or []:
            scene.timeline.append(
                TimelineEvent(
                    event_type=event_type_from_text(parsed_event.event_type),
                    character_id=ids_by_name.get(parsed_event.character_name or ""),
                    content=parsed_event.content or "",
                ),
            )
        scene.selected_characters = scene.character_ids()
        scenes.append(scene)

    return ScriptParseResult(characters=characters, scenes=scenes)


def parse_script_json(text: str) -> ScriptParseResult:
    """Parse a JSON script response into characters and scenes.

    Raises:
        ScriptParsingError: If no JSON is found or it does not match the
            script schema.

    """
    payload = extract_json(text)
    if payload is None:
        msg = "No JSON object found in the response"
        raise ScriptParsingError(msg)

    try:
        parsed = ParsedScript.model_validate_json(payload)
    except ValidationError as e:
        msg = f"Response does not match the script schema: {e}"
        raise ScriptParsingError(msg) from e

    result = convert_parsed_script(parsed)
    logger.info(
        "Imported %d character(s) and %d scene(s)",
        len(result.characters),
        len(result.scenes),
    )
    return result


def parse_character_analysis(text: str, name: str = "") -> Character:
    """Decode a photo analysis response into a new character.

    Raises:
        CharacterAnalysisError: If the response holds no usable JSON.

    """
    payload = extract_json(text)
    if payload is None:
        msg = "No JSON object found in the analysis response"
        raise CharacterAnalysisError(msg)

    try:
        result = CharacterAnalysisResult.model_validate_json(payload)
    except ValidationError as e:
        msg = f"Response does not match the character schema: {e}"
        raise CharacterAnalysisError(msg) from e

    return result.to_character(name=name)
