"""Services that talk to the hosted language models."""

import abc
import base64
import logging
import mimetypes
from pathlib import Path

import anthropic
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .config import AIProvider, Settings
from .exceptions import (
    CharacterAnalysisError,
    ScriptGenerationError,
    ScriptParsingError,
    SettingAnalysisError,
)
from .importer import parse_character_analysis, parse_script_json
from .models import Character, Scene, ScriptGenerationRequest, ScriptParseResult
from .parsing import parse_script_text
from .prompts import (
    CHARACTER_ANALYSIS_PROMPT,
    JSON_ONLY_PREAMBLE,
    SETTING_ANALYSIS_PROMPT,
    build_generation_prompt,
    build_parsing_prompt,
)

logger = logging.getLogger(__name__)

ImageInput = tuple[bytes, str]  # (data, mime type)


class TextGenerator(abc.ABC):
    """Turns a prompt (and optionally an image) into model text.

    Subclasses set ``provider`` and implement ``_generate_once``. Calls
    that hit the provider's rate limit are retried with exponential backoff;
    every other error propagates immediately.
    """

    provider: AIProvider

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        attempts: int = 3,
        min_wait: int = 2,
        max_wait: int = 8,
    ) -> None:
        """Initialize the generator with an API key."""
        if not api_key:
            msg = (
                f"API Key is missing for {self.provider.display_name}. "
                "Set it in the environment or a .env file."
            )
            raise ValueError(msg)
        self.model = model
        self.max_tokens = max_tokens
        self.attempts = attempts
        self.min_wait = min_wait
        self.max_wait = max_wait

    def generate(
        self,
        prompt: str,
        *,
        json_mode: bool = False,
        image: ImageInput | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate text for ``prompt``.

        Args:
            prompt: The user prompt.
            json_mode: Ask the provider for a JSON-only reply.
            image: Optional ``(bytes, mime_type)`` sent alongside the prompt.
            temperature: Sampling temperature; provider default when None.

        Returns:
            str: The model's reply.

        Raises:
            Exception: The provider's own error once retries are exhausted.

        """
        retryer = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(
                multiplier=2,
                min=self.min_wait,
                max=self.max_wait,
            ),
            retry=retry_if_exception(self.is_rate_limited),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        def _attempt() -> str:
            return self._generate_once(prompt, json_mode, image, temperature)

        logger.info("Calling %s (%s)", self.provider.display_name, self.model)
        return retryer(_attempt)

    @abc.abstractmethod
    def _generate_once(
        self,
        prompt: str,
        json_mode: bool,
        image: ImageInput | None,
        temperature: float | None,
    ) -> str:
        """Make a single provider call."""

    def is_rate_limited(self, error: BaseException) -> bool:
        return False


class GeminiGenerator(TextGenerator):
    provider = AIProvider.GEMINI

    def __init__(self, api_key: str, model: str = "gemini-1.5-pro", **kwargs) -> None:
        super().__init__(api_key, model, **kwargs)
        self.client = genai.Client(api_key=api_key)

    def _generate_once(self, prompt, json_mode, image, temperature) -> str:
        parts = []
        if image is not None:
            data, mime_type = image
            parts.append(types.Part.from_bytes(data=data, mime_type=mime_type))
        parts.append(types.Part.from_text(text=prompt))

        response = self.client.models.generate_content(
            model=self.model,
            contents=[types.Content(parts=parts)],
            config=types.GenerateContentConfig(
                response_mime_type="application/json" if json_mode else None,
                temperature=temperature,
                max_output_tokens=self.max_tokens,
            ),
        )
        if not response.text:
            msg = "No text in Gemini response"
            raise RuntimeError(msg)
        return response.text

    def is_rate_limited(self, error: BaseException) -> bool:
        return isinstance(error, genai_errors.APIError) and error.code == 429


class OpenAIGenerator(TextGenerator):
    provider = AIProvider.OPENAI

    def __init__(self, api_key: str, model: str = "gpt-4o", **kwargs) -> None:
        super().__init__(api_key, model, **kwargs)
        self.client = openai.OpenAI(api_key=api_key)

    def _generate_once(self, prompt, json_mode, image, temperature) -> str:
        content: str | list[dict] = prompt
        if image is not None:
            data, mime_type = image
            encoded = base64.b64encode(data).decode("utf-8")
            content = [
                {"type": "text", "text": prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                },
            ]

        request_kwargs = {
            "model": self.model,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": self.max_tokens,
        }
        if temperature is not None:
            request_kwargs["temperature"] = temperature
        if json_mode:
            request_kwargs["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(**request_kwargs)
        text = response.choices[0].message.content if response.choices else None
        if not text:
            msg = "No content in OpenAI response"
            raise RuntimeError(msg)
        return text

    def is_rate_limited(self, error: BaseException) -> bool:
        return isinstance(error, openai.RateLimitError)


class ClaudeGenerator(TextGenerator):
    provider = AIProvider.CLAUDE

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        **kwargs,
    ) -> None:
        super().__init__(api_key, model, **kwargs)
        self.client = anthropic.Anthropic(api_key=api_key)

    def _generate_once(self, prompt, json_mode, image, temperature) -> str:
        # Claude has no JSON response mode; ask for it in the prompt instead.
        if json_mode:
            prompt = JSON_ONLY_PREAMBLE + prompt

        content: str | list[dict] = prompt
        if image is not None:
            data, mime_type = image
            content = [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": mime_type,
                        "data": base64.b64encode(data).decode("utf-8"),
                    },
                },
                {"type": "text", "text": prompt},
            ]

        request_kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": content}],
        }
        if temperature is not None:
            request_kwargs["temperature"] = temperature

        message = self.client.messages.create(**request_kwargs)
        text = "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )
        if not text:
            msg = "No text in Claude response"
            raise RuntimeError(msg)
        return text

    def is_rate_limited(self, error: BaseException) -> bool:
        return isinstance(error, anthropic.RateLimitError)


_GENERATORS: dict[AIProvider, type[TextGenerator]] = {
    AIProvider.OPENAI: OpenAIGenerator,
    AIProvider.CLAUDE: ClaudeGenerator,
    AIProvider.GEMINI: GeminiGenerator,
}


def build_generator(settings: Settings, provider: AIProvider) -> TextGenerator:
    """Create the generator for ``provider`` from ``settings``.

    Raises:
        ValueError: If the provider has no API key.

    """
    generator_cls = _GENERATORS[provider]
    return generator_cls(settings.api_key(provider), model=settings.model(provider))


def _read_image(image_path: Path) -> ImageInput:
    mime_type, _ = mimetypes.guess_type(image_path)
    if not mime_type or not mime_type.startswith("image/"):
        mime_type = "image/jpeg"
    with image_path.open("rb") as f:
        return f.read(), mime_type


class ScriptService:
    """Generates, imports and analyzes script material.

    Every call goes to ``generator``. Setting analysis alone retries once on
    ``fallback`` when the primary provider fails.
    """

    def __init__(
        self,
        generator: TextGenerator,
        fallback: TextGenerator | None = None,
    ) -> None:
        self.generator = generator
        self.fallback = fallback

    def generate_script(self, request: ScriptGenerationRequest) -> list[Scene]:
        """Generate a new script and parse it into scenes.

        Args:
            request: Story, style and roster for the new script.

        Returns:
            list[Scene]: Parsed scenes, with names resolved against
            ``request.characters``.

        Raises:
            ScriptGenerationError: If the provider call fails.

        """
        prompt = build_generation_prompt(request)
        try:
            script_text = self.generator.generate(prompt, temperature=0.8)
        except Exception as e:
            msg = f"Failed to generate script: {e}"
            raise ScriptGenerationError(msg) from e

        scenes = parse_script_text(
            script_text, request.characters, setting=request.setting,
        )
        if not scenes:
            logger.warning("Generated script contained no SCENE markers")
        logger.info("Generated %d scene(s)", len(scenes))
        return scenes

    def parse_script(self, script_text: str) -> ScriptParseResult:
        """Break an existing script down into new characters and scenes.

        Raises:
            ScriptParsingError: If the provider call fails or its reply is not
                a usable JSON script.

        """
        prompt = build_parsing_prompt(script_text)
        try:
            reply = self.generator.generate(prompt, json_mode=True, temperature=0.1)
        except Exception as e:
            msg = f"Failed to parse script: {e}"
            raise ScriptParsingError(msg) from e
        return parse_script_json(reply)

    def analyze_character(self, image_path: Path, name: str = "") -> Character:
        """Create a character from a reference photo.

        Raises:
            CharacterAnalysisError: If the image cannot be read, the provider
                call fails, or the reply is not usable.

        """
        try:
            image = _read_image(image_path)
            reply = self.generator.generate(
                CHARACTER_ANALYSIS_PROMPT, json_mode=True, image=image,
            )
        except Exception as e:
            msg = f"Failed to analyze character image: {e}"
            raise CharacterAnalysisError(msg) from e

        character = parse_character_analysis(reply, name=name)
        character.reference_image = str(image_path)
        return character

    def analyze_setting(self, image_path: Path) -> str:
        """Describe the location in a photo as a short scene setting.

        If the primary provider fails and a fallback is set, the fallback is
        tried once. When both fail, the primary error is reported.

        Raises:
            SettingAnalysisError: If the image cannot be read or no provider
                returns a description.

        """
        try:
            image = _read_image(image_path)
        except OSError as e:
            msg = f"Failed to read setting image: {e}"
            raise SettingAnalysisError(msg) from e

        try:
            return self._describe_setting(self.generator, image)
        except Exception as e:
            primary_error = e

        if self.fallback is None:
            msg = f"Failed to analyze setting image: {primary_error}"
            raise SettingAnalysisError(msg) from primary_error

        logger.warning(
            "%s failed (%s), trying %s",
            self.generator.provider.display_name,
            primary_error,
            self.fallback.provider.display_name,
        )
        try:
            return self._describe_setting(self.fallback, image)
        except Exception as e:
            logger.debug("Fallback setting analysis failed: %s", e)
            msg = f"Failed to analyze setting image: {primary_error}"
            raise SettingAnalysisError(msg) from primary_error

    def _describe_setting(self, generator: TextGenerator, image: ImageInput) -> str:
        reply = generator.generate(SETTING_ANALYSIS_PROMPT, image=image)
        setting = reply.strip().strip('"').strip()
        if not setting:
            msg = "Empty setting description"
            raise RuntimeError(msg)
        return setting
