"""Pydantic data models for PromptScript projects."""

import logging
from datetime import datetime
from enum import Enum
from typing import Annotated, TypeVar
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class EventType(str, Enum):
    """Kind of beat in a scene timeline."""

    DIALOGUE = "Dialogue"
    CHARACTER_ACTION = "Character Action"
    ACTING_NOTE = "Acting Note"
    ENVIRONMENT_ACTION = "Environment Action"
    CAMERA_ACTION = "Camera Action"

    @property
    def requires_character(self) -> bool:
        return self in (
            EventType.DIALOGUE,
            EventType.CHARACTER_ACTION,
            EventType.ACTING_NOTE,
        )

    @property
    def display_name(self) -> str:
        if self is EventType.DIALOGUE:
            return "Character Dialogue"
        return self.value


class EmotionalTone(str, Enum):
    TENSE = "Tense"
    JOYFUL = "Joyful"
    MELANCHOLY = "Melancholy"
    MYSTERIOUS = "Mysterious"
    ROMANTIC = "Romantic"
    ACTION = "Action"
    PEACEFUL = "Peaceful"
    DRAMATIC = "Dramatic"
    COMEDY = "Comedy"


class EstablishingShot(str, Enum):
    WIDE_ANGLE = "Wide Angle"
    CLOSE_UP = "Close Up"
    MEDIUM_SHOT = "Medium Shot"
    ZOOM_IN = "Zoom In"
    ZOOM_OUT = "Zoom Out"
    HANDHELD = "Handheld"
    TRACKING = "Tracking Shot"
    OVERHEAD = "Overhead Shot"
    LOW_ANGLE = "Low Angle"
    HIGH_ANGLE = "High Angle"


class ShotMode(str, Enum):
    SINGLE = "Single Shot"
    MULTI = "Multi-shot"


class VideoStyle(str, Enum):
    CINEMATIC = "Cinematic"
    ANIME = "Anime"
    DOCUMENTARY = "Documentary"
    OLD_FILM = "Old Film (8mm/16mm)"
    YOUTUBE_VLOG = "YouTube Vlog"
    HYPERREALISTIC = "Hyperrealistic"
    FANTASY = "Fantasy"


class ConnectingWord(str, Enum):
    """Transition rendered between an event and the one after it."""

    THEN = "Then"
    WHILE = "While"
    CUT_TO = "Cut to"
    PAUSE = "Pause"
    MEANWHILE = "Meanwhile"
    SUDDENLY = "Suddenly"
    SLOWLY = "Slowly"
    FADE_IN = "Fade in"
    FADE_OUT = "Fade out"
    NONE = "None"


class DialogueType(str, Enum):
    SAYS = "says"
    SHOUTS = "shouts"
    WHISPERS = "whispers"
    SCREAMS = "screams"
    MUTTERS = "mutters"
    LAUGHS = "laughs"
    CRIES = "cries"
    SIGHS = "sighs"
    GASPS = "gasps"


class StoryStructure(str, Enum):
    SAVE_THE_CAT = "Save the Cat"
    THREE_ACT = "Three-Act Structure"
    HEROES_JOURNEY = "Hero's Journey"
    FREYTAG = "Freytag's Pyramid"
    SIMO = "SIMO"

    @property
    def description(self) -> str:
        return _STRUCTURE_DESCRIPTIONS[self]

    @property
    def beats(self) -> list[str]:
        return list(_STRUCTURE_BEATS[self])


_STRUCTURE_DESCRIPTIONS = {
    StoryStructure.SAVE_THE_CAT: (
        "Opening Image → Setup → Inciting Incident → Debate → Break into 2 → "
        "B Story → Midpoint → Bad Guys Close In → Dark Night → Break into 3 → "
        "Finale → Final Image"
    ),
    StoryStructure.THREE_ACT: (
        "Act 1: Setup (25%) → Act 2: Confrontation (50%) → Act 3: Resolution (25%)"
    ),
    StoryStructure.HEROES_JOURNEY: (
        "Ordinary World → Call to Adventure → Refusal → Meeting Mentor → "
        "Crossing Threshold → Tests → Revelation → Transformation → Return"
    ),
    StoryStructure.FREYTAG: (
        "Exposition → Rising Action → Climax → Falling Action → Resolution"
    ),
    StoryStructure.SIMO: (
        "Setup character/world → Inciting incident disrupts → "
        "Midpoint revelation → Outcome/resolution"
    ),
}

_STRUCTURE_BEATS = {
    StoryStructure.SAVE_THE_CAT: (
        "Opening Image", "Setup", "Inciting Incident", "Debate",
        "Break into 2", "Midpoint", "Dark Night", "Finale",
    ),
    StoryStructure.THREE_ACT: (
        "Setup", "Plot Point 1", "Midpoint", "Plot Point 2", "Climax",
        "Resolution",
    ),
    StoryStructure.HEROES_JOURNEY: (
        "Ordinary World", "Call to Adventure", "Meeting Mentor",
        "Crossing Threshold", "Tests/Trials", "Revelation", "Transformation",
        "Return",
    ),
    StoryStructure.FREYTAG: (
        "Exposition", "Rising Action", "Climax", "Falling Action", "Resolution",
    ),
    StoryStructure.SIMO: ("Setup", "Inciting Incident", "Midpoint", "Outcome"),
}


class Custom(BaseModel):
    """Free-text value chosen in place of one of an enum's options."""

    model_config = ConfigDict(frozen=True)

    text: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def display_text(value: Enum | Custom) -> str:
    """Resolve an enum option or a custom value to the text it renders as."""
    if isinstance(value, Custom):
        return value.text
    return value.value


def enum_from_text(enum_cls: type[E], text: str | None, default: E) -> E:
    """Match ``text`` exactly against the display values of ``enum_cls``."""
    if text is None:
        return default
    try:
        return enum_cls(text)
    except ValueError:
        logger.debug(
            "Unknown %s %r, using %s", enum_cls.__name__, text, default.value,
        )
        return default


# --- Characters ---


class _Attributes(BaseModel):
    """Group of free-text character attributes; nulls read as empty."""

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return "" if value is None else value


class BasicInfo(_Attributes):
    name: str = ""
    age: str = ""
    gender: str = ""
    ethnicity: str = ""


class FacialFeatures(_Attributes):
    face_shape: str = ""
    eye_color: str = ""
    eye_shape: str = ""
    eyebrows: str = ""
    nose_shape: str = ""
    lip_shape: str = ""
    skin_tone: str = ""
    facial_hair: str = ""
    distinctive_features: str = ""


class Hair(_Attributes):
    color: str = ""
    style: str = ""
    length: str = ""
    texture: str = ""


class Body(_Attributes):
    height: str = ""
    build: str = ""
    posture: str = ""


class Clothing(_Attributes):
    top_wear: str = ""
    bottom_wear: str = ""
    footwear: str = ""
    accessories: str = ""
    overall_style: str = ""


class Personality(_Attributes):
    traits: str = ""
    voice_description: str = ""
    mannerisms: str = ""


class Character(BaseModel):
    """A recurring person in a project, described for visual consistency."""

    id: UUID = Field(default_factory=uuid4)
    basic_info: BasicInfo = Field(default_factory=BasicInfo)
    facial_features: FacialFeatures = Field(default_factory=FacialFeatures)
    hair: Hair = Field(default_factory=Hair)
    body: Body = Field(default_factory=Body)
    clothing: Clothing = Field(default_factory=Clothing)
    personality: Personality = Field(default_factory=Personality)
    consistency_notes: str = ""
    reference_image: str | None = None  # Local path

    @property
    def name(self) -> str:
        return self.basic_info.name

    @property
    def age(self) -> str:
        return self.basic_info.age

    @property
    def gender(self) -> str:
        return self.basic_info.gender

    def comprehensive_description(self) -> str:
        """Describe every non-empty attribute, for a character's first appearance.

        Returns the name followed by a parenthesized, semicolon-separated list
        of attribute phrases, or the bare name when no attribute is set.
        """
        details: list[str] = []

        info = self.basic_info
        if info.age:
            details.append(f"{info.age} year old")
        if info.gender:
            details.append(info.gender)
        if info.ethnicity:
            details.append(info.ethnicity)

        build = [v for v in (self.body.height, self.body.build) if v]
        if build:
            details.append(", ".join(build))

        hair = [
            v
            for v in (
                self.hair.color,
                self.hair.length,
                self.hair.style,
                self.hair.texture,
            )
            if v
        ]
        if hair:
            details.append(f"{' '.join(hair)} hair")

        face = self.facial_features
        face_desc = []
        if face.eye_color:
            face_desc.append(f"{face.eye_color} eyes")
        if face.eye_shape:
            face_desc.append(f"{face.eye_shape} eye shape")
        if face.face_shape:
            face_desc.append(f"{face.face_shape} face")
        if face.skin_tone:
            face_desc.append(f"{face.skin_tone} skin")
        if face.facial_hair:
            face_desc.append(face.facial_hair)
        if face_desc:
            details.append(", ".join(face_desc))

        if face.distinctive_features:
            details.append(face.distinctive_features)

        clothing = self.clothing
        clothing_desc = []
        if clothing.overall_style:
            clothing_desc.append(f"{clothing.overall_style} style")
        clothing_desc.extend(
            v
            for v in (clothing.top_wear, clothing.bottom_wear, clothing.footwear)
            if v
        )
        if clothing_desc:
            details.append(f"wearing {', '.join(clothing_desc)}")

        if clothing.accessories:
            details.append(f"with {clothing.accessories}")

        if self.body.posture:
            details.append(f"{self.body.posture} posture")

        if self.personality.mannerisms:
            details.append(self.personality.mannerisms)

        if self.consistency_notes:
            details.append(self.consistency_notes)

        if not details:
            return info.name
        return f"{info.name} ({'; '.join(details)})"


# --- Scenes ---


class TimelineEvent(BaseModel):
    """One beat of a scene: a line of dialogue, an action, a note or a shot."""

    id: UUID = Field(default_factory=uuid4)
    event_type: EventType
    character_id: UUID | None = None  # Weak reference into the project roster
    content: str = ""
    connecting_word: ConnectingWord | Custom = ConnectingWord.THEN
    dialogue_type: DialogueType | Custom = DialogueType.SAYS

    @property
    def connecting_text(self) -> str:
        if self.connecting_word is ConnectingWord.NONE:
            return ""
        return display_text(self.connecting_word)

    @property
    def dialogue_text(self) -> str:
        return display_text(self.dialogue_type)


class Cinematography(BaseModel):
    lighting: str = ""
    shot_type: str = ""
    camera_angle: str = ""
    lens_type: str = ""
    focal_length: str = ""
    camera_movement: str = ""
    color_grading: str = ""


class Scene(BaseModel):
    """A unit of a project: an ordered timeline plus shot metadata."""

    id: UUID = Field(default_factory=uuid4)
    title: str = ""
    description: str = ""
    setting: str = ""
    emotion: EmotionalTone | Custom = EmotionalTone.DRAMATIC
    establishing_shot: EstablishingShot | Custom = EstablishingShot.WIDE_ANGLE
    shot_mode: ShotMode = ShotMode.SINGLE
    cinematography: Cinematography = Field(default_factory=Cinematography)
    timeline: list[TimelineEvent] = Field(default_factory=list)
    # Grows with add_timeline_event only; use character_ids() for the real set.
    selected_characters: list[UUID] = Field(default_factory=list)

    def add_timeline_event(self, event: TimelineEvent) -> None:
        self.timeline.append(event)
        if (
            event.character_id is not None
            and event.character_id not in self.selected_characters
        ):
            self.selected_characters.append(event.character_id)

    def remove_timeline_event(self, event_id: UUID) -> None:
        self.timeline = [e for e in self.timeline if e.id != event_id]

    def move_timeline_event(self, source: int, destination: int) -> None:
        """Move an event, treating ``destination`` as an insertion index.

        Out-of-range or identical indices leave the timeline untouched.
        """
        count = len(self.timeline)
        if (
            source == destination
            or not 0 <= source < count
            or not 0 <= destination <= count
        ):
            return
        event = self.timeline.pop(source)
        if destination > source:
            destination -= 1
        self.timeline.insert(destination, event)

    def character_ids(self) -> list[UUID]:
        """Ids referenced by the timeline, in order of first reference."""
        ids: list[UUID] = []
        for event in self.timeline:
            if event.character_id is not None and event.character_id not in ids:
                ids.append(event.character_id)
        return ids


# --- Projects ---


class Project(BaseModel):
    """Root aggregate owning a project's characters and scenes."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    description: str = ""
    characters: list[Character] = Field(default_factory=list)
    scenes: list[Scene] = Field(default_factory=list)
    video_style: VideoStyle | Custom = VideoStyle.CINEMATIC
    created: datetime = Field(default_factory=datetime.now)
    last_modified: datetime = Field(default_factory=datetime.now)

    def find_character(self, character_id: UUID | None) -> Character | None:
        if character_id is None:
            return None
        return next((c for c in self.characters if c.id == character_id), None)

    def find_character_by_name(self, name: str) -> Character | None:
        return next((c for c in self.characters if c.name == name), None)

    def characters_for_scene(self, scene: Scene) -> list[Character]:
        """Roster characters the scene's timeline actually references."""
        referenced = set(scene.character_ids())
        return [c for c in self.characters if c.id in referenced]

    def remove_character(self, character_id: UUID) -> None:
        # Events keep their now-dangling ids; lookups treat them as absent.
        self.characters = [c for c in self.characters if c.id != character_id]

    def remove_scene(self, scene_id: UUID) -> None:
        self.scenes = [s for s in self.scenes if s.id != scene_id]

    def touch(self) -> None:
        self.last_modified = datetime.now()


# --- Service inputs and results ---


class ScriptParseResult(BaseModel):
    """Characters and scenes recovered from an imported script."""

    characters: list[Character]
    scenes: list[Scene]


class ScriptGenerationRequest(BaseModel):
    """What to ask the model for when generating a new script."""

    logline: str
    duration: int = Field(60, gt=0)
    scene_duration: int = Field(10, gt=0)
    video_style: VideoStyle | Custom = VideoStyle.CINEMATIC
    story_structure: StoryStructure = StoryStructure.THREE_ACT
    primary_emotion: EmotionalTone = EmotionalTone.DRAMATIC
    genres: list[str] = Field(default_factory=list)
    setting: str = ""
    cinematography_notes: str = ""
    characters: list[Character] = Field(default_factory=list)

    @property
    def number_of_scenes(self) -> int:
        return max(1, self.duration // self.scene_duration)
