"""Error types raised at PromptScript's service and file boundaries."""


class PromptScriptError(RuntimeError):
    """Base class for recoverable PromptScript failures."""


class ScriptParsingError(PromptScriptError):
    """An imported script could not be turned into characters and scenes."""


class ScriptGenerationError(PromptScriptError):
    """The model could not produce a script."""


class CharacterAnalysisError(PromptScriptError):
    """A reference photo could not be analyzed into a character."""


class ProjectFileError(PromptScriptError):
    """A project file could not be read or written."""


class SettingAnalysisError(PromptScriptError):
    """A location photo could not be turned into a scene setting."""
