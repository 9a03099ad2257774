"""
AI hairstyle consultation with a static fallback.

The consultation never blocks booking: any failure of the external model
falls back to a fixed recommendation set (analysis) or to no preview image.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from ..domain.exceptions import ConsultationError
from ..domain.models import HairStyleRecommendation

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "https://images.unsplash.com/photo-1585747860715-2ba37e788b70?w=400&auto=format&fit=crop&q=60"


class ConsultantClientProtocol(Protocol):
    """Protocol describing the model client behaviour needed by the service."""

    def analyze(self, description: str, image: Optional[str] = None) -> List[HairStyleRecommendation]:
        """Return hairstyle recommendations."""

    def generate_preview(self, image: str, style_name: str, style_description: str) -> Optional[str]:
        """Return a data URL of the rendered style, or None."""


def fallback_recommendations() -> List[HairStyleRecommendation]:
    return [
        HairStyleRecommendation(
            name="Classic Textured Crop",
            description=(
                "A modern, versatile cut. Layers and natural texture balance the facial "
                "features; easy to style day to day with a light product."
            ),
            face_shape_match="Oval / soft square - side layers frame the face",
            maintenance_level="Low",
            image_url="https://images.unsplash.com/photo-1503951914875-452162b7f300?w=400&auto=format&fit=crop&q=60",
        ),
        HairStyleRecommendation(
            name="Modern Quiff",
            description=(
                "Volume on top with a faded side gives a confident, modern silhouette "
                "that balances a strong jawline."
            ),
            face_shape_match="Square / diamond - volume on top lengthens the face",
            maintenance_level="Medium",
            image_url="https://images.unsplash.com/photo-1622286342621-4bd786c2447c?w=400&auto=format&fit=crop&q=60",
        ),
        HairStyleRecommendation(
            name="Textured Fringe",
            description=(
                "A young, dynamic style. The fringe lightly covers the brows for a soft "
                "transition, ideal for softer features."
            ),
            face_shape_match="Heart / oval - the fringe balances the forehead",
            maintenance_level="Low-Medium",
            image_url="https://images.unsplash.com/photo-1599351431202-1e0f0137899a?w=400&auto=format&fit=crop&q=60",
        ),
    ]


class ConsultationService:
    """Runs the consultation against the model client, degrading to fallbacks."""

    def __init__(self, client: Optional[ConsultantClientProtocol]):
        self._client = client

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def analyze(self, description: str, image: Optional[str] = None) -> List[HairStyleRecommendation]:
        if self._client is None:
            logger.warning("Consultation model not configured, using fallback recommendations")
            return fallback_recommendations()

        try:
            recommendations = self._client.analyze(description, image)
        except ConsultationError as exc:
            logger.warning("Consultation failed, using fallback recommendations: %s", exc)
            return fallback_recommendations()

        for recommendation in recommendations:
            if not recommendation.image_url:
                recommendation.image_url = PLACEHOLDER_IMAGE
        return recommendations

    def generate_preview(self, image: str, style_name: str, style_description: str) -> Optional[str]:
        if self._client is None:
            logger.warning("Consultation model not configured, no preview for %s", style_name)
            return None

        try:
            return self._client.generate_preview(image, style_name, style_description)
        except ConsultationError as exc:
            logger.warning("Preview generation failed for %s: %s", style_name, exc)
            return None
