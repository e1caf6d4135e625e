import asyncio

from google import genai
from google.genai import types
from loguru import logger

from cultura.core.config import settings


class GeminiService:
    def __init__(self, model: str = settings.DEFAULT_GEMINI_MODEL, api_key: str | None = settings.GEMINI_API_KEY):
        self.model = model
        self.client = None
        if api_key:
            try:
                self.client = genai.Client(api_key=api_key)
            except Exception as e:
                logger.warning(f"Failed to initialize Gemini client: {e}")
        else:
            logger.warning("GEMINI_API_KEY not set. Generative recommendations will be disabled.")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    @staticmethod
    def get_prompt():
        return """
        You are a cultural education content recommendation assistant for a mobile learning app.
        Given a learner's profile and a list of available content, pick the pieces they are most
        likely to enjoy and finish.

        Rules:
        - Only recommend content ids that appear in the provided list.
        - Score each pick from 1 to 100.
        - Give one short reason per pick, written for the learner.
        - Respond with a JSON array only, no prose.
        """

    def generate_content(self, prompt: str) -> str:
        """Returns "" when no client is configured. API errors propagate to the calling source."""
        if not self.client:
            logger.warning("Gemini client not initialized. Generative recommendations will be disabled.")
            return ""
        response = self.client.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=self.get_prompt(),
                temperature=0.7,
                max_output_tokens=2000,
                response_mime_type="application/json",
            ),
        )
        return (response.text or "").strip()

    async def generate_content_async(self, prompt: str) -> str:
        """Async wrapper to avoid blocking the event loop during network calls."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.generate_content(prompt))
