"""
ItemRadar Attribute Extractor Agent
──────────────────────────────────────────────────
Reads a free-text lost/found report and returns structured fields
(category, colour, brand, location hints, ...) used to enrich matching.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Optional, Protocol

from google.adk.agents import LlmAgent
from google.adk.runners import Runner
from google.adk.sessions import InMemorySessionService
from google.genai import types
from pydantic import BaseModel, ValidationError

from ..common.errors import ExtractionError
from ..common.schemas import ExtractedAttributes, ItemType
from ..matching.normalizer import CATEGORY_ALIASES

logger = logging.getLogger(__name__)

APP_NAME = "itemradar_extractor"

CATEGORIES = ", ".join(CATEGORY_ALIASES)

INSTRUCTION = (
    "You extract structured data from lost & found reports written by students and staff.\n\n"
    "Return JSON only, with these fields (use null when the text does not say):\n"
    "- item: short name of the object\n"
    "- description: distinguishing details such as markings or contents\n"
    f"- category: exactly one of: {CATEGORIES}\n"
    "- color: main colour\n"
    "- brand: brand or model if mentioned\n"
    "- location: where the item was lost or last seen / found\n"
    "- time: when it happened, as written\n"
    "- contact: personal contact handles only (phone, LINE, Instagram, Facebook, email). "
    "Places such as 'admin office' are NOT contacts; put them in remark.\n"
    "- contact_type: one of phone, line, instagram, facebook, email\n"
    "- remark: anything else, e.g. where the item can be picked up\n"
    "- target: 'lost' or 'found'\n\n"
    "Example: 'found a black Casio watch near the canteen, pick it up at the security office' -> "
    "item 'watch', category 'accessories', color 'black', brand 'Casio', location 'canteen', "
    "remark 'pick up at the security office', target 'found'."
)


class AttributeExtractor(Protocol):
    async def extract(self, text: str, item_type: ItemType) -> ExtractedAttributes:
        """Return structured attributes or raise ``ExtractionError``."""
        ...


class ExtractionOutput(BaseModel):
    """Response schema handed to the model"""
    item: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None
    location: Optional[str] = None
    time: Optional[str] = None
    contact: Optional[str] = None
    contact_type: Optional[str] = None
    remark: Optional[str] = None
    target: Optional[str] = None


def parse_extraction(raw: str, item_type: ItemType) -> ExtractedAttributes:
    """Pull the first JSON object out of the model text and validate it."""
    json_match = re.search(r"\{.*\}", raw or "", re.DOTALL)
    if not json_match:
        raise ExtractionError("No JSON found in extractor response")
    try:
        data = json.loads(json_match.group())
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Extractor returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ExtractionError("Extractor JSON is not an object")

    if "contactType" in data and "contact_type" not in data:
        data["contact_type"] = data.pop("contactType")
    # empty strings mean "not mentioned"
    cleaned = {k: (v.strip() or None) if isinstance(v, str) else v for k, v in data.items()}
    if cleaned.get("target") not in (ItemType.LOST.value, ItemType.FOUND.value):
        cleaned["target"] = item_type.value

    try:
        return ExtractedAttributes.model_validate(cleaned)
    except ValidationError as e:
        raise ExtractionError(f"Extractor output failed validation: {e}") from e


def build_agent(model: str) -> LlmAgent:
    return LlmAgent(
        name="extractor_agent",
        model=model,
        description="Extracts category, colour, brand and location hints from item reports.",
        instruction=INSTRUCTION,
        output_schema=ExtractionOutput,
        output_key="extracted_attributes",
        disallow_transfer_to_parent=True,
        disallow_transfer_to_peers=True,
    )


class AgentAttributeExtractor:
    """``AttributeExtractor`` backed by a Gemini ``LlmAgent``."""

    def __init__(self, model: str = "gemini-2.0-flash", runner: Optional[Runner] = None):
        if runner is None:
            runner = Runner(
                agent=build_agent(model),
                app_name=APP_NAME,
                session_service=InMemorySessionService(),
            )
        self._runner = runner

    async def extract(self, text: str, item_type: ItemType) -> ExtractedAttributes:
        user_id = "extractor"
        session_id = f"{uuid.uuid4().hex}_session"
        session_service = self._runner.session_service
        await session_service.create_session(app_name=self._runner.app_name,
                                             user_id=user_id, session_id=session_id)

        prompt = f"Report type: {item_type.value}\nReport text: {text}"
        message = types.Content(role="user", parts=[types.Part(text=prompt)])

        final_response = ""
        try:
            async for event in self._runner.run_async(user_id=user_id, session_id=session_id,
                                                      new_message=message):
                if event.is_final_response() and event.content and event.content.parts:
                    final_response = "".join(
                        part.text for part in event.content.parts if getattr(part, "text", None)
                    )
                    break
        except Exception as e:
            logger.error(f"Extractor agent run failed: {e}")
            raise ExtractionError(f"Extractor agent run failed: {e}") from e
        finally:
            await session_service.delete_session(app_name=self._runner.app_name,
                                                 user_id=user_id, session_id=session_id)

        if not final_response.strip():
            raise ExtractionError("No valid response received from extractor agent")
        return parse_extraction(final_response, item_type)
