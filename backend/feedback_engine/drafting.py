"""Drafting service adapters — the text-generation collaborator.

The lifecycle manager only knows ``DraftingService``; it bounds every call with
a timeout and turns any failure into ``GenerationFailed``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import google.generativeai as genai
from pydantic import BaseModel, Field

from feedback_engine.config import settings
from feedback_engine.issue_extraction import describe_issues

logger = logging.getLogger(__name__)


class DraftingContext(BaseModel):
    platform: str
    guest_name: str = "Valued Guest"
    rating: int = Field(ge=1, le=5)
    review_text: str = ""
    sentiment: str | None = None
    brand_voice: str = "professional and friendly"
    contact_email: str | None = None
    hotel_name: str = "our hotel"
    issues: list[str] = Field(default_factory=list)
    regenerate: bool = False
    previous_rejection_reason: str | None = None


class DraftResult(BaseModel):
    text: str
    model: str


class DraftingUnavailable(RuntimeError):
    """The adapter produced nothing usable."""


class DraftingService(Protocol):
    name: str

    async def draft(self, context: DraftingContext) -> DraftResult: ...


def build_prompt(context: DraftingContext) -> str:
    issues = describe_issues(context.issues)
    lines = [
        f"You are the guest relations manager of {context.hotel_name}.",
        f"Write a public reply to a {context.rating}-star review on {context.platform}.",
        f"Brand voice: {context.brand_voice}.",
        f"Address the guest as {context.guest_name}.",
        f"Name the specific issues: {issues}." if context.issues else "Thank the guest for the specific points they made.",
        "Do not promise compensation. Keep it under 150 words. Plain text only.",
    ]
    if context.contact_email:
        lines.append(f"Invite the guest to reach us directly at {context.contact_email}.")
    if context.regenerate and context.previous_rejection_reason:
        lines.append(f"A previous draft was rejected by the manager: {context.previous_rejection_reason}. Avoid that.")
    lines.append("")
    lines.append(f"REVIEW ({context.sentiment or 'unknown'} sentiment):")
    lines.append(context.review_text)
    return "\n".join(lines)


class GeminiDraftingService:
    """Google Gemini via the generativeai SDK; the blocking call runs in a thread."""

    name = "gemini"

    def __init__(self, api_key: str, model_name: str | None = None):
        genai.configure(api_key=api_key)
        self.model_name = model_name or settings.LLM_MODEL

    async def draft(self, context: DraftingContext) -> DraftResult:
        model = genai.GenerativeModel(self.model_name)
        response = await asyncio.to_thread(model.generate_content, build_prompt(context))
        text = (response.text or "").strip()
        if not text:
            raise DraftingUnavailable("Gemini returned an empty draft")
        return DraftResult(text=text, model=self.model_name)


class TemplateDraftingService:
    """Deterministic rating-banded replies, used when no LLM key is configured."""

    name = "template"

    async def draft(self, context: DraftingContext) -> DraftResult:
        issues = describe_issues(context.issues)
        contact = (
            f" Please reach us directly at {context.contact_email} so we can make this right."
            if context.contact_email
            else ""
        )
        if context.rating <= 2:
            text = (
                f"Dear {context.guest_name}, thank you for taking the time to share your feedback. "
                f"I sincerely apologize for {issues}. This does not reflect the standards we hold "
                f"ourselves to at {context.hotel_name}, and we have raised these points with the "
                f"teams involved.{contact}"
            )
        elif context.rating == 3:
            text = (
                f"Dear {context.guest_name}, thank you for your honest review. We acknowledge "
                f"{issues} and have shared your comments with our management team so we can "
                f"improve.{contact} We hope to welcome you back to {context.hotel_name}."
            )
        else:
            praise = f" Your kind words about {issues} mean a great deal to the team." if context.issues else ""
            text = (
                f"Dear {context.guest_name}, thank you so much for your wonderful review of "
                f"{context.hotel_name}!{praise} We look forward to welcoming you back soon."
            )
        return DraftResult(text=text, model="template-v1")


def build_drafting_service() -> DraftingService:
    if settings.GEMINI_API_KEY:
        logger.info("Drafting via Gemini model %s", settings.LLM_MODEL)
        return GeminiDraftingService(settings.GEMINI_API_KEY)
    logger.warning("GEMINI_API_KEY not set. Drafting runs in TEMPLATE mode.")
    return TemplateDraftingService()
