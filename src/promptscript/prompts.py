"""Prompt templates sent to the language models."""

from .models import ScriptGenerationRequest, display_text


def build_generation_prompt(request: ScriptGenerationRequest) -> str:
    """Ask for a new script in the line-marker format the parser reads."""
    scenes = request.number_of_scenes
    structure = request.story_structure.value
    genre_text = " mixed with ".join(request.genres)
    character_text = "\n".join(
        f"{c.name} - {c.age} year old {c.gender}, {c.basic_info.ethnicity}"
        for c in request.characters
    )
    if not character_text:
        character_text = "Create compelling characters that serve the story"

    return (
        f"Create a compelling {request.duration}-second video script.\n\n"
        "CORE STORY:\n"
        f"Logline: {request.logline}\n\n"
        f"STORY STRUCTURE: {structure}\n"
        f"Story Beats to Follow: {' → '.join(request.story_structure.beats)}\n\n"
        f"EMOTIONAL JOURNEY: {request.primary_emotion.value}\n"
        "The script should maintain this primary emotional tone while allowing "
        "for natural variation.\n\n"
        "PRODUCTION DETAILS:\n"
        f"Style: {display_text(request.video_style)}\n"
        f"Genre: {genre_text}\n"
        f"Setting: {request.setting}\n"
        f"Cinematography: {request.cinematography_notes}\n\n"
        "CHARACTERS:\n"
        f"{character_text}\n\n"
        "TECHNICAL REQUIREMENTS:\n"
        f"- Create exactly {scenes} scenes.\n"
        f"- Each scene should be approximately {request.scene_duration} seconds.\n"
        f"- Follow the {structure} structure.\n"
        "- Build an emotional arc from setup to resolution.\n"
        "- Ensure each scene advances the story and serves the logline.\n\n"
        "For each scene, provide:\n"
        "1. TITLE: Brief, compelling scene title\n"
        "2. DESCRIPTION: What happens in the scene (focus on story beats)\n"
        "3. EMOTION: Choose from (Tense, Joyful, Melancholy, Mysterious, "
        "Romantic, Action, Peaceful, Dramatic, Comedy)\n"
        "4. ESTABLISHING_SHOT: Choose from (Wide Angle, Close Up, Medium Shot, "
        "Zoom In, Zoom Out, Handheld, Tracking Shot)\n"
        "5. TIMELINE_EVENTS: An ordered sequence of actions and dialogue.\n\n"
        "TIMELINE EVENT TYPES:\n"
        '- CHARACTER_DIALOGUE: [character name]: "[what they say]"\n'
        "- CHARACTER_ACTION: [character name]: [what they do]\n"
        "- ENVIRONMENT_ACTION: [something that happens in the scene]\n"
        "- CAMERA_ACTION: [camera movement or shot]\n"
        "- ACTING_NOTE: [character name]: [how they should act/feel]\n\n"
        "Format each scene like this, starting a new line for each element:\n"
        "SCENE [number]:\n"
        "TITLE: [title]\n"
        "DESCRIPTION: [description]\n"
        "EMOTION: [emotion]\n"
        "ESTABLISHING_SHOT: [establishing shot]\n"
        "TIMELINE_EVENTS:\n"
        'CHARACTER_DIALOGUE: [character name]: "[dialogue]"\n'
        "CHARACTER_ACTION: [character name]: [action]"
    )


def build_parsing_prompt(script_text: str) -> str:
    """Ask for an existing script to be broken down as JSON."""
    return (
        "Analyze this script and extract character and scene information. "
        "Return ONLY valid JSON that strictly follows this structure. Do not "
        "include any explanatory text or markdown formatting.\n\n"
        "{\n"
        '  "characters": [\n'
        '    { "name": "Character Name", "age": "estimated age", '
        '"gender": "gender", "ethnicity": "ethnicity if apparent", '
        '"description": "comprehensive physical description" }\n'
        "  ],\n"
        '  "scenes": [\n'
        "    {\n"
        '      "title": "Scene title/location",\n'
        '      "description": "what happens in this scene",\n'
        '      "setting": "location/setting description",\n'
        '      "emotion": "dominant emotion (e.g., Tense, Joyful, Melancholy)",\n'
        '      "establishing_shot": "suggested establishing shot '
        '(e.g., Wide Angle, Close Up)",\n'
        '      "timeline_events": [\n'
        '        { "character_name": "Character Name", '
        '"event_type": "Character Action", "content": "what they do" },\n'
        '        { "character_name": "Character Name", '
        '"event_type": "Dialogue", "content": "what they say" },\n'
        '        { "character_name": "Character Name", '
        '"event_type": "Acting Note", "content": "how they should act" },\n'
        '        { "character_name": "N/A", '
        '"event_type": "Environment Action", "content": "environmental events" },\n'
        '        { "character_name": "N/A", '
        '"event_type": "Camera Action", "content": "camera movements" }\n'
        "      ]\n"
        "    }\n"
        "  ]\n"
        "}\n\n"
        "Script to analyze:\n"
        f"{script_text}"
    )


CHARACTER_ANALYSIS_PROMPT = """\
Analyze the person in this image for use as a consistent character in AI video \
generation. Describe only what is visible. Return ONLY valid JSON with this \
structure, using empty strings for anything you cannot determine:

{
  "basic_info": {"age": "", "gender": "", "ethnicity": ""},
  "facial_features": {"face_shape": "", "eye_color": "", "eye_shape": "", \
"eyebrows": "", "nose_shape": "", "lip_shape": "", "skin_tone": "", \
"facial_hair": "", "distinctive_features": ""},
  "hair": {"color": "", "style": "", "length": "", "texture": ""},
  "body": {"height": "", "build": "", "posture": ""},
  "clothing": {"top_wear": "", "bottom_wear": "", "footwear": "", \
"accessories": "", "overall_style": ""},
  "personality": {"mannerisms": ""},
  "consistency_notes": "key visual details that must stay the same across shots"
}"""

JSON_ONLY_PREAMBLE = (
    "You must respond with ONLY valid JSON. No explanations, no markdown, "
    "just JSON that follows this exact structure:\n\n"
)

SETTING_ANALYSIS_PROMPT = """\
Analyze this image and describe the location as a concise scene setting for a \
movie script.

Provide a detailed but focused description that includes:
- Primary environment/location type
- Time of day and lighting conditions
- Overall mood and atmosphere
- Key visual elements that establish the setting

Limit the description to 2-3 sentences. Focus on creating a vivid setting \
description that would help an AI video generator understand the scene.

Example format: "A bustling downtown coffee shop during morning rush hour, \
filled with warm golden light streaming through large windows. The atmosphere \
is energetic yet cozy, with the sounds of espresso machines and quiet \
conversations creating an urban sanctuary."

Respond with ONLY the setting description, no additional text or formatting."""
