from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Dict, Optional
from functools import lru_cache
import argparse
import asyncio
import logging

from google.cloud import firestore

from itemradar_match.common.config import MatchingConfig, Settings, get_matching_config, get_settings
from itemradar_match.common.errors import ExtractionError, ItemNotFoundError
from itemradar_match.common.schemas import ItemType, MatchCandidate, QuotaDecision
from itemradar_match.extractor_agent.agent import AgentAttributeExtractor, AttributeExtractor
from itemradar_match.matching.service import MatchService, extract_with_timeout
from itemradar_match.quota.guard import QuotaGuard
from itemradar_match.store.base import ItemStore, PolicySource
from itemradar_match.store.firestore import FirestoreItemStore, FirestorePolicySource, FirestoreUsageStore

# Configura logging básico
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(get_settings().log_file),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

app = FastAPI(title="ItemRadar Match API", version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

VALID_TYPES = (ItemType.LOST.value, ItemType.FOUND.value)


# ─── dependencies ───────────────────────────────────────────────

@lru_cache(maxsize=1)
def get_firestore_client() -> firestore.Client:
    return firestore.Client(project=get_settings().require_project_id())


def get_item_store() -> ItemStore:
    return FirestoreItemStore(get_firestore_client())


def get_policy_source() -> PolicySource:
    return FirestorePolicySource(get_firestore_client())


@lru_cache(maxsize=1)
def get_quota_guard() -> QuotaGuard:
    return QuotaGuard(FirestoreUsageStore(get_firestore_client()))


@lru_cache(maxsize=1)
def get_extractor() -> Optional[AttributeExtractor]:
    settings = get_settings()
    if not settings.google_api_key:
        logger.warning("GOOGLE_API_KEY is not set, AI extraction is unavailable")
        return None
    return AgentAttributeExtractor(model=settings.extractor_model)


# Modelos
class MatchRequest(BaseModel):
    type: Optional[str] = None
    itemId: Optional[str] = None
    useAI: bool = False
    userId: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)


class ExtractionRequest(BaseModel):
    text: Optional[str] = None
    type: Optional[str] = None
    userId: Optional[str] = None


def camelize(data: Dict) -> Dict:
    return {to_camel(k): v for k, v in data.items()}


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def match_to_response(match: MatchCandidate) -> Dict:
    body = camelize(match.candidate.model_dump(mode="json"))
    body.update({
        "lostId": match.lost_id,
        "foundId": match.found_id,
        "score": match.score,
        "confidence": match.confidence.value,
        "scorePercentage": match.score_percentage,
        "reasons": list(match.reasons),
        "breakdown": match.breakdown.model_dump(),
    })
    return body


def rate_limit_body(decision: QuotaDecision) -> Dict:
    return {
        "error": "rate_limit_exceeded",
        "reason": decision.reason.value,
        "message": decision.message,
        "userRemainingMinute": decision.user_remaining_minute,
        "userRemainingHour": decision.user_remaining_hour,
        "systemRemainingMinute": decision.system_remaining_minute,
        "systemRemainingHour": decision.system_remaining_hour,
        "resetMinute": decision.reset_minute.isoformat(),
        "resetHour": decision.reset_hour.isoformat(),
    }


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
    return error_response(400, "invalid_request", "Malformed request body")


@app.get("/")
async def root():
    return {"message": "ItemRadar Match API is running"}


@app.post("/api/match")
async def match_items(
        request: MatchRequest,
        store: ItemStore = Depends(get_item_store),
        policies: PolicySource = Depends(get_policy_source),
        guard: QuotaGuard = Depends(get_quota_guard),
        extractor: Optional[AttributeExtractor] = Depends(get_extractor),
        settings: Settings = Depends(get_settings),
        config: MatchingConfig = Depends(get_matching_config),
):
    if request.type not in VALID_TYPES:
        return error_response(400, "invalid_type", 'Type must be "lost" or "found"')
    if not request.itemId or not request.itemId.strip():
        return error_response(400, "missing_item_id", "Item ID is required")

    item_type = ItemType(request.type)
    try:
        logger.info(f"Processing match request for {item_type.value} item {request.itemId} (useAI={request.useAI})")
        policy = await asyncio.to_thread(policies.get_rate_limit_policy) if request.useAI else None
        service = MatchService(store, extractor=extractor, guard=guard, config=config,
                               extractor_timeout=settings.extractor_timeout_seconds)
        outcome = await service.find_matches(item_type, request.itemId, use_ai=request.useAI,
                                             user_id=request.userId, policy=policy,
                                             limit=request.limit)
    except ItemNotFoundError as e:
        logger.info(str(e))
        return error_response(404, "item_not_found", f"{item_type.value.capitalize()} item not found")
    except Exception as e:
        logger.exception(f"Error in match endpoint: {e}")
        return error_response(500, "internal_error", "Internal server error")

    matches = [match_to_response(m) for m in outcome.matches]
    return {
        "matches": matches,
        "total": len(matches),
        "useAI": request.useAI,
        "aiApplied": outcome.ai_applied,
        "aiStatus": outcome.ai_status.value,
    }


@app.post("/api/ner")
async def extract_attributes(
        request: ExtractionRequest,
        policies: PolicySource = Depends(get_policy_source),
        guard: QuotaGuard = Depends(get_quota_guard),
        extractor: Optional[AttributeExtractor] = Depends(get_extractor),
        settings: Settings = Depends(get_settings),
):
    if not request.text or not request.text.strip():
        return error_response(400, "missing_text", "Text is required")
    if request.type not in VALID_TYPES:
        return error_response(400, "invalid_type", 'Type must be "lost" or "found"')

    item_type = ItemType(request.type)
    try:
        # no extractor means no call, so no budget is spent
        if extractor is None:
            raise ExtractionError("No attribute extractor configured")

        if request.userId:
            policy = await asyncio.to_thread(policies.get_rate_limit_policy)
            decision = await asyncio.to_thread(guard.admit, request.userId, policy, "ner")
            if not decision.allowed:
                return JSONResponse(status_code=429, content=rate_limit_body(decision))

        result = await extract_with_timeout(extractor, request.text, item_type,
                                            settings.extractor_timeout_seconds)
    except ExtractionError as e:
        logger.error(f"Extraction failed: {e}")
        return error_response(500, "extraction_failed", "Failed to extract data from text")
    except Exception as e:
        logger.exception(f"Error in NER endpoint: {e}")
        return error_response(500, "internal_error", "Internal server error")

    return camelize(result.model_dump(mode="json"))


@app.get("/api/ner")
async def get_quota(
        userId: Optional[str] = Query(default=None),
        policies: PolicySource = Depends(get_policy_source),
        guard: QuotaGuard = Depends(get_quota_guard),
):
    """Current remaining AI quota, without consuming any."""
    if not userId:
        return error_response(400, "missing_user_id", "userId required")
    try:
        policy = await asyncio.to_thread(policies.get_rate_limit_policy)
        snapshot = await asyncio.to_thread(guard.peek, userId, policy)
    except Exception as e:
        logger.exception(f"Error getting quota: {e}")
        return error_response(500, "internal_error", "Internal server error")
    return camelize(snapshot.model_dump())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='ItemRadar Match API Server')
    parser.add_argument('--port', type=int, default=8000, help='Port to run the server on')
    args = parser.parse_args()

    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=args.port)
