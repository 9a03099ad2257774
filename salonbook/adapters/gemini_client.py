"""
Google Gemini REST client for the hairstyle consultation.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from ..domain.exceptions import ConsultationError
from ..domain.models import HairStyleRecommendation

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """
You are a world-class hair stylist and image consultant at the "{salon}" salon.
Provide a personalized consultation based on the user's photo and description.

1. Face shape: analyze the face shape (Oval, Square, Round, Diamond, Heart).
2. Texture: analyze hair texture (Straight, Wavy, Curly, Coily) and density.
3. Recommendation: suggest 3 distinct, modern hairstyles that balance these features.

- description: explain why the style works for this face shape and texture.
- faceShapeMatch: state the face shape and why the style matches it.
- maintenanceLevel: Low, Medium or High, realistic for the cut.

Return strict JSON (an array of objects) without Markdown code blocks.
"""

PREVIEW_PROMPT = """Generate a photorealistic makeover of the person in the image.
Target hairstyle: "{name}"
Style details: {description}

Keep the face, facial features, skin texture and lighting exactly as in the original.
The hair must look real, with natural strands, shine and weight, and a natural hairline."""

RECOMMENDATION_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "name": {"type": "STRING"},
            "description": {"type": "STRING"},
            "faceShapeMatch": {"type": "STRING"},
            "maintenanceLevel": {"type": "STRING"},
        },
        "required": ["name", "description", "faceShapeMatch", "maintenanceLevel"],
    },
}


class GeminiClient:
    """
    Client for the Gemini ``generateContent`` endpoint.
    """

    GEMINI_API_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash-image",
        salon_name: str = "TYRANDEVU",
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.salon_name = salon_name
        self.timeout = timeout
        self.session = session or requests.Session()

    def analyze(self, description: str, image: Optional[str] = None) -> List[HairStyleRecommendation]:
        """
        Ask the model for hairstyle recommendations.

        Args:
            description: The customer's own description and preferences
            image: Optional base64 JPEG, with or without a ``data:`` URL header

        Returns:
            Recommendations parsed from the model's JSON answer

        Raises:
            ConsultationError: If the call fails or the answer is not valid JSON
        """
        parts: List[Dict[str, Any]] = [{"text": ANALYSIS_PROMPT.format(salon=self.salon_name)}]
        if image:
            parts.append(_inline_jpeg(image))
        parts.append({"text": f"User Description & Preferences: {description}"})

        data = self._generate(
            parts,
            generation_config={
                "responseMimeType": "application/json",
                "responseSchema": RECOMMENDATION_SCHEMA,
            },
        )

        text = _first_text(data)
        if not text:
            return []

        try:
            payload = json.loads(_strip_code_fence(text))
        except json.JSONDecodeError as exc:
            raise ConsultationError(f"Could not parse consultation answer: {exc}") from exc

        if not isinstance(payload, list):
            raise ConsultationError("Consultation answer is not a list of recommendations")

        return [HairStyleRecommendation.from_payload(item) for item in payload if isinstance(item, dict)]

    def generate_preview(self, image: str, style_name: str, style_description: str) -> Optional[str]:
        """
        Render the customer with the given hairstyle.

        Returns:
            A ``data:image/...;base64,`` URL, or None if the model returned no image

        Raises:
            ConsultationError: If the call fails
        """
        parts = [
            _inline_jpeg(image),
            {"text": PREVIEW_PROMPT.format(name=style_name, description=style_description)},
        ]
        data = self._generate(parts)

        for part in _candidate_parts(data):
            inline = part.get("inlineData") or part.get("inline_data")
            if isinstance(inline, dict) and inline.get("data"):
                mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/jpeg"
                return f"data:{mime_type};base64,{inline['data']}"

        return None

    def _generate(
        self,
        parts: List[Dict[str, Any]],
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.GEMINI_API_ENDPOINT}/models/{self.model}:generateContent"
        body: Dict[str, Any] = {"contents": [{"parts": parts}]}
        if generation_config:
            body["generationConfig"] = generation_config

        try:
            response = self.session.post(
                url,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=body,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as exc:
            raise ConsultationError(f"Gemini request failed: {exc}") from exc
        except ValueError as exc:
            raise ConsultationError(f"Gemini returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise ConsultationError(f"Gemini answer is a {type(data).__name__}, expected an object")
        return data


def _inline_jpeg(image: str) -> Dict[str, Any]:
    # Drop a "data:image/jpeg;base64," header if present
    data = image.split(",", 1)[1] if "," in image else image
    return {"inlineData": {"mimeType": "image/jpeg", "data": data}}


def _candidate_parts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list):
        raise ConsultationError("Gemini answer has malformed candidates")
    if not candidates:
        return []

    first = candidates[0]
    if not isinstance(first, dict):
        raise ConsultationError("Gemini answer has a malformed candidate")
    content = first.get("content")
    if content is None:
        return []
    if not isinstance(content, dict):
        raise ConsultationError("Gemini candidate has malformed content")

    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise ConsultationError("Gemini candidate has malformed parts")
    return [part for part in parts if isinstance(part, dict)]


def _first_text(data: Dict[str, Any]) -> str:
    for part in _candidate_parts(data):
        text = part.get("text")
        if isinstance(text, str) and text.strip():
            return text.strip()
    return ""


def _strip_code_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    lines = text.strip("`").splitlines()
    if lines and lines[0].strip().lower() in ("json", ""):
        lines = lines[1:]
    return "\n".join(lines).strip()
