"""Pydantic schemas for JSON returned by the models.

Field names follow the wire format the prompts ask for, not the domain
model. Everything below the top level is optional so that a partially
filled response still decodes.
"""

from pydantic import BaseModel, Field

from .models import (
    BasicInfo,
    Body,
    Character,
    Clothing,
    FacialFeatures,
    Hair,
    Personality,
)


class ParsedCharacter(BaseModel):
    name: str | None = None
    age: str | None = None
    gender: str | None = None
    ethnicity: str | None = None
    description: str | None = None


class ParsedTimelineEvent(BaseModel):
    character_name: str | None = None
    event_type: str | None = None
    content: str | None = None


class ParsedScene(BaseModel):
    title: str | None = None
    description: str | None = None
    setting: str | None = None
    emotion: str | None = None
    establishing_shot: str | None = None
    timeline_events: list[ParsedTimelineEvent] | None = None


class ParsedScript(BaseModel):
    """Top-level shape of an imported script."""

    characters: list[ParsedCharacter]
    scenes: list[ParsedScene]


class CharacterAnalysisResult(BaseModel):
    """Attributes read off a reference photo."""

    basic_info: BasicInfo = Field(default_factory=BasicInfo)
    facial_features: FacialFeatures = Field(default_factory=FacialFeatures)
    hair: Hair = Field(default_factory=Hair)
    body: Body = Field(default_factory=Body)
    clothing: Clothing = Field(default_factory=Clothing)
    personality: Personality = Field(default_factory=Personality)
    consistency_notes: str | None = None

    def to_character(self, name: str = "") -> Character:
        basic_info = self.basic_info.model_copy()
        if name:
            basic_info.name = name
        return Character(
            basic_info=basic_info,
            facial_features=self.facial_features,
            hair=self.hair,
            body=self.body,
            clothing=self.clothing,
            personality=self.personality,
            consistency_notes=self.consistency_notes or "",
        )
