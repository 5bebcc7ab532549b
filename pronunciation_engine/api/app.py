"""HTTP API for pronunciation assessment

Endpoints (multipart form uploads):
    POST /api/speech-evaluation          remote assessment ladder only
    POST /api/pronunciation-comparison   local comparison pipeline only
    POST /api/assessment                 full fused assessment
    GET  /health

Run locally:
    python -m pronunciation_engine.api.app
"""

import asyncio
import json
import logging
import os
import sys
from functools import lru_cache
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse

from pronunciation_engine import __version__
from pronunciation_engine.pipeline import AssessmentEngine
from pronunciation_engine.remote.azure_client import ConfigurationError, RemoteAssessmentClient


load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(title="pronunciation-engine", version=__version__)


@lru_cache(maxsize=1)
def get_engine() -> AssessmentEngine:
    return AssessmentEngine()


@app.on_event("startup")
def build_engine() -> None:
    """Load and validate the configuration before the first request"""
    engine = get_engine()
    logger.info(f"Assessment engine ready (reference catalog at {engine.comparator.catalog.directory})")


def _configuration_error(error: ConfigurationError) -> JSONResponse:
    logger.error(f"Speech service is not configured: {error}")
    return JSONResponse(
        status_code=500,
        content={"error": str(error), "error_type": "configuration"},
    )


def _bad_request(message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message, **extra})


def _parse_prosody(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode the optional prosody JSON field; malformed input is ignored"""
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except ValueError as e:
        logger.info(f"Ignoring malformed prosody data: {e}")
        return None
    return value if isinstance(value, dict) else None


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok", "version": __version__}


@app.post("/api/speech-evaluation")
async def speech_evaluation(audio: Optional[UploadFile] = File(None),
                            reference_text: str = Form("")):
    try:
        client = RemoteAssessmentClient.from_env()
    except ConfigurationError as e:
        return _configuration_error(e)

    data = await audio.read() if audio is not None else b""
    if not data or not reference_text.strip():
        return _bad_request("Audio file and reference text are required")

    logger.info(f"Speech evaluation requested: {len(data)} bytes, reference='{reference_text}'")
    result = await client.assess(data, reference_text)
    return result.to_dict()


@app.post("/api/pronunciation-comparison")
async def pronunciation_comparison(audio: Optional[UploadFile] = File(None),
                                   reference_text: str = Form(""),
                                   user_recognized_text: str = Form(""),
                                   user_prosody: Optional[str] = Form(None)):
    data = await audio.read() if audio is not None else b""
    if not data or not reference_text.strip():
        return _bad_request("Audio file and reference text are required", success=False)

    logger.info(f"Pronunciation comparison requested: {len(data)} bytes, "
                f"reference='{reference_text}', recognized='{user_recognized_text}'")
    assessment = await asyncio.to_thread(
        get_engine().compare, data, reference_text,
        recognized_text=user_recognized_text,
        prosody=_parse_prosody(user_prosody),
    )
    return {"success": True, "result": assessment.to_dict()}


@app.post("/api/assessment")
async def assessment(audio: Optional[UploadFile] = File(None),
                     reference_text: str = Form("")):
    try:
        client = RemoteAssessmentClient.from_env()
    except ConfigurationError as e:
        return _configuration_error(e)

    data = await audio.read() if audio is not None else b""
    if not data or not reference_text.strip():
        return _bad_request("Audio file and reference text are required")

    logger.info(f"Full assessment requested: {len(data)} bytes, reference='{reference_text}'")
    result = await get_engine().assess(data, reference_text, client)
    return result.to_dict()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
