"""Render scenes, projects and characters as video generation prompts."""

import logging
from collections.abc import Sequence
from uuid import UUID

from .models import (
    Character,
    Custom,
    EventType,
    Project,
    Scene,
    TimelineEvent,
    VideoStyle,
    display_text,
)

logger = logging.getLogger(__name__)

CONSISTENCY_NOTE = "(Keep character consistency)"
EMPTY_PROJECT_MESSAGE = "This project has no scenes to export."
SCENE_SEPARATOR = "\n\n--------------------\n\n"


def character_description(character: Character, first_appearance: bool) -> str:
    """Describe a character in full on first appearance, briefly after that.

    Later appearances keep age and gender as short descriptors so the video
    model can re-ground the character without the full description.
    """
    if first_appearance:
        return character.comprehensive_description()

    descriptors = [d for d in (character.age, character.gender) if d]
    if not descriptors:
        return character.name
    return f"{character.name} ({', '.join(descriptors)})"


class PromptFormatter:
    """Turns the typed project model into plain-text prompts.

    Formatting is deterministic and keeps no state between calls.
    """

    def format_scene(
        self,
        scene: Scene,
        characters: Sequence[Character],
        style: VideoStyle | Custom,
    ) -> str:
        """Render one scene as a prompt.

        Args:
            scene: The scene to render.
            characters: Characters to resolve event references against.
                Events whose character is not in this list are skipped.
            style: Video style named in the header.

        Returns:
            str: The prompt text.

        """
        roster = {c.id: c for c in characters}
        seen: set[UUID] = set()

        prompt = (
            f"Style: {display_text(style)}\n"
            f"Setting: {scene.setting}\n"
            f"Lighting: {scene.cinematography.lighting or 'Natural'}\n"
            f"Initial Camera Setup: {display_text(scene.establishing_shot)}, "
            f"{scene.shot_mode.value}\n\n"
        )

        for index, event in enumerate(scene.timeline):
            if index > 0:
                connecting_text = scene.timeline[index - 1].connecting_text
                if connecting_text:
                    prompt += f"{connecting_text}\n\n"

            line = self._render_event(event, roster, seen)
            if line is not None:
                prompt += f"{line}\n"

        prompt += f"\n{CONSISTENCY_NOTE}"
        return prompt

    def _render_event(
        self,
        event: TimelineEvent,
        roster: dict[UUID, Character],
        seen: set[UUID],
    ) -> str | None:
        if event.event_type is EventType.ENVIRONMENT_ACTION:
            return event.content
        if event.event_type is EventType.CAMERA_ACTION:
            if event.content.lower().startswith("camera"):
                return event.content
            return f"Camera {event.content}"

        character = roster.get(event.character_id)
        if character is None:
            logger.debug(
                "Skipping %s event %s: character %s not found",
                event.event_type.value,
                event.id,
                event.character_id,
            )
            return None

        description = character_description(
            character, first_appearance=character.id not in seen,
        )
        seen.add(character.id)

        if event.event_type is EventType.DIALOGUE:
            return f'{description} {event.dialogue_text} "{event.content}"'
        if event.event_type is EventType.ACTING_NOTE:
            return f"{description}: {event.content}"
        return f"{description} {event.content}"

    def format_project(self, project: Project, detailed: bool = False) -> str:
        """Render every scene of a project, each under a numbered header.

        Participating characters are derived from each scene's timeline.
        With ``detailed`` each scene uses the long-form layout.
        """
        render = self.format_detailed if detailed else self.format_scene
        if not project.scenes:
            return EMPTY_PROJECT_MESSAGE

        blocks = []
        for number, scene in enumerate(project.scenes, start=1):
            scene_prompt = render(
                scene,
                project.characters_for_scene(scene),
                project.video_style,
            )
            blocks.append(f"--- SCENE {number}: {scene.title} ---\n\n{scene_prompt}")
        return SCENE_SEPARATOR.join(blocks)

    def format_character(self, character: Character) -> str:
        """Render a standalone character reference as ``<name>: <details>``."""
        name = character.name
        details = character.comprehensive_description()
        prefix = f"{name} ("
        if details.startswith(prefix) and details.endswith(")"):
            details = details[len(prefix):-1]
        return f"{name}: {details}"

    def format_detailed(
        self,
        scene: Scene,
        characters: Sequence[Character],
        style: VideoStyle | Custom,
    ) -> str:
        """Render the long-form scene breakdown, grouped by character."""
        prompt = f"Visual Style: {display_text(style)}.\n"
        prompt += f"Emotional Tone: {display_text(scene.emotion)}.\n"
        prompt += f"Setting: {scene.setting}\n"
        prompt += f"Scene Description: {scene.description}\n\n"

        if characters:
            prompt += "Characters Present:\n"
            for character in characters:
                events = [e for e in scene.timeline if e.character_id == character.id]
                if not events:
                    continue
                prompt += f"• {self.format_character(character)}\n"
                for event in events:
                    prompt += f"  - {_DETAILED_LABELS[event.event_type]}"
                    if event.event_type is EventType.DIALOGUE:
                        prompt += f'"{event.content}".\n'
                    else:
                        prompt += f"{event.content}.\n"
            prompt += "\n"

        prompt += "Cinematography & Framing:\n"
        cinematography = scene.cinematography
        for label, value in (
            ("Shot Type", cinematography.shot_type),
            ("Camera Angle", cinematography.camera_angle),
            ("Lens", cinematography.lens_type),
            ("Focal Length", cinematography.focal_length),
            ("Lighting", cinematography.lighting),
            ("Camera Movement", cinematography.camera_movement),
            ("Color Grading", cinematography.color_grading),
        ):
            if value:
                prompt += f"- {label}: {value}.\n"

        prompt += (
            "\nIMPORTANT: Maintain character consistency, especially facial "
            "features and clothing, as described above."
        )
        return prompt


_DETAILED_LABELS = {
    EventType.DIALOGUE: "Says: ",
    EventType.CHARACTER_ACTION: "Does: ",
    EventType.ACTING_NOTE: "Acting Note: ",
    EventType.ENVIRONMENT_ACTION: "Environment: ",
    EventType.CAMERA_ACTION: "Camera: ",
}
