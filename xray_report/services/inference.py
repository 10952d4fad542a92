import base64
import logging

from openai import APIConnectionError, APIStatusError, OpenAI

from xray_report.core.config import settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an expert radiologist AI assistant specializing in X-ray image analysis.
Provide comprehensive, professional diagnostic reports following medical standards.
Your analysis should include:
1. Clinical overview (2-3 sentences)
2. Detailed findings (3-5 specific observations)
3. Recommendations (2-4 actionable suggestions)

Format your response as JSON with this structure:
{
  "overview": "Brief clinical summary",
  "detailed": ["Finding 1", "Finding 2", "Finding 3"],
  "recommendations": ["Recommendation 1", "Recommendation 2"],
  "confidence": 85
}

Be thorough, accurate, and maintain professional medical terminology while being clear.
Include confidence score (0-100) based on image quality and diagnostic clarity."""

USER_PROMPT = "Please analyze this X-ray image and provide a comprehensive diagnostic report. Image filename: {name}"


class InferenceError(RuntimeError):
    """The vision model call failed or returned nothing usable."""


class VisionClient:
    """One chat-completions call per image against an OpenAI-compatible endpoint."""

    def __init__(self, client: OpenAI | None = None, model: str | None = None):
        self._client = client
        self.model = model or settings.inference_model

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not settings.inference_api_key:
                raise InferenceError("INFERENCE_API_KEY is not set")
            # No SDK retries: a failed call ends the analysis
            self._client = OpenAI(
                api_key=settings.inference_api_key,
                base_url=settings.inference_base_url or None,
                timeout=settings.inference_timeout_seconds,
                max_retries=0,
            )
        return self._client

    def describe(self, image_bytes: bytes, mime_type: str, original_name: str) -> str:
        """Returns the model's raw reply text. Raises InferenceError."""
        b64 = base64.standard_b64encode(image_bytes).decode("utf-8")
        url = f"data:{mime_type};base64,{b64}"
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": USER_PROMPT.format(name=original_name)},
                            {"type": "image_url", "image_url": {"url": url}},
                        ],
                    },
                ],
            )
        except APIStatusError as e:
            reason = e.response.reason_phrase if e.response is not None else ""
            logger.warning("Vision model returned %s: %s", e.status_code, e)
            raise InferenceError(f"AI analysis failed: {e.status_code} {reason}".rstrip()) from e
        except APIConnectionError as e:
            logger.warning("Vision model unreachable: %s", e)
            raise InferenceError(f"AI analysis failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content.strip():
            raise InferenceError("No analysis content received from AI")
        return content
