#!/usr/bin/env python3
"""
FastAPI web interface for the Helpdesk engine.

Endpoints:
- POST /ask     {"question": "..."} -> answer JSON
                {"source": "warmup"} -> initializes the engine, no question asked
- GET  /health  engine and knowledge base status

Answer JSON keys: answer, escalation, confidence, responseTimeMs, source, action.
"""

import json
import logging
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from helpdesk.config.constants import (
    KEY_QUESTION,
    MSG_INTERNAL_ERROR,
    MSG_MISSING_QUESTION,
    MSG_WARMED,
    WARMUP_SOURCE,
)
from helpdesk.engine import Action, AnswerSource, FinalAnswer, LazyEngine, assemble_answer
from helpdesk.exceptions.exceptions import log_exception
from helpdesk.knowledge.kb_loader import describe

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def system_answer(text: str, escalate: bool, confidence: float = 0.0) -> FinalAnswer:
    """Answer produced by the host itself, without consulting KB or LLM."""
    return assemble_answer(
        answer_text=text,
        confidence=confidence,
        escalate=escalate,
        source=AnswerSource.SYSTEM,
        action=Action.NONE,
        elapsed_ms=0,
    )


WARMED_RESPONSE = system_answer(MSG_WARMED, escalate=False, confidence=1.0)
MISSING_QUESTION_RESPONSE = system_answer(MSG_MISSING_QUESTION, escalate=False)
# Escalate on errors
GENERIC_FAILURE_RESPONSE = system_answer(MSG_INTERNAL_ERROR, escalate=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.engine_handle.close()


app = FastAPI(
    title="Helpdesk Engine",
    description="Answers support questions from a knowledge base or an LLM, escalating when needed",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Global engine handle - initialized on first request
app.state.engine_handle = LazyEngine()


async def _read_payload(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


@app.post("/ask")
async def ask(request: Request):
    """Answer one helpdesk question."""
    request_id = uuid.uuid4().hex[:12]
    payload = await _read_payload(request)
    handle: LazyEngine = request.app.state.engine_handle

    if payload.get("source") == WARMUP_SOURCE:
        logger.info(f"[{request_id}] Warmup request")
        try:
            await handle.get()
        except Exception as e:
            log_exception(e, logger, {"request_id": request_id, "phase": "warmup"})
            return JSONResponse(GENERIC_FAILURE_RESPONSE.to_dict())
        return JSONResponse(WARMED_RESPONSE.to_dict())

    raw_question = payload.get(KEY_QUESTION)
    question = str(raw_question).strip() if raw_question is not None else ""
    logger.info(f"[{request_id}] Request start: question_length={len(question)} keys={sorted(payload)}")

    if not question:
        logger.warning(f"[{request_id}] Missing question")
        return JSONResponse(MISSING_QUESTION_RESPONSE.to_dict())

    try:
        engine = await handle.get()
        answer = await engine.resolve(question)
    except Exception as e:
        log_exception(e, logger, {"request_id": request_id})
        return JSONResponse(GENERIC_FAILURE_RESPONSE.to_dict())

    logger.info(
        f"[{request_id}] Request done: {answer.elapsed_ms}ms escalation={answer.escalate} "
        f"confidence={answer.confidence:.2f} source={answer.source.value}"
    )
    return JSONResponse(answer.to_dict())


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring."""
    handle: LazyEngine = request.app.state.engine_handle
    status = {
        "status": "healthy" if handle.ready else "not_initialized",
        "timestamp": datetime.now().isoformat(),
        "engine_ready": handle.ready,
    }
    if handle.ready:
        engine = await handle.get()
        status["knowledge_base"] = describe(engine.context.kb)
        status["provider"] = engine.context.provider.get_provider_info()
    return status


def main():
    """Run the web server."""
    load_dotenv()
    host = os.getenv("HELPDESK_HOST", "0.0.0.0")
    port = int(os.getenv("HELPDESK_PORT", "8000"))
    logger.info(f"Starting Helpdesk web interface on http://{host}:{port} (docs at /api/docs)")

    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=False,
        log_level="info"
    )


if __name__ == "__main__":
    main()
