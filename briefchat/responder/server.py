"""
Chat Server

FastAPI server exposing the chat pipeline over Server-Sent Events.

Endpoints:
- POST /api/ai/chat: Stream an answer (metadata event, then text events)
- GET /models: Selectable chat models
- GET /health: Health check

Stream format (one JSON object per ``data:`` line):
1. {"type": "metadata", "intent": ..., "model": ..., "articles": [...]}
2. {"type": "text", "content": ...} per chunk
3. {"type": "error", "message": ...} if the upstream fails mid-stream
   or the answer ends without any text
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from ..common.config import LOGS_DIR, BriefchatConfig, ensure_directories, load_config
from ..common.errors import is_quota_error
from ..common.schemas import ChatRequest, StreamChunk
from .models import DEFAULT_CHAT_MODEL, MODEL_CATALOG
from .orchestrator import ChatOrchestrator, OrchestrationResult

logger = logging.getLogger("briefchat.responder.server")

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the component graph once on startup"""
    logger.info("Starting up...")

    if getattr(app.state, "orchestrator", None) is None:
        load_dotenv()
        ensure_directories()
        config = load_config()
        app.state.config = config
        app.state.orchestrator = ChatOrchestrator.from_config(config)
        logger.info(
            "Ready | Google keys: %d | SiliconFlow: %s | Router: %s",
            len(config.google.api_keys),
            bool(config.siliconflow.api_key),
            "on" if config.router.enabled else "off",
        )

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="Briefchat",
    description="Conversational access to a corpus of summarized articles",
    version="0.1.0",
    lifespan=lifespan,
)


def sse_event(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def error_response(exc: Exception) -> JSONResponse:
    """Map a pre-stream failure to an HTTP error"""
    if is_quota_error(exc):
        return JSONResponse({"message": "AI quota exceeded", "details": str(exc)}, status_code=429)
    if isinstance(exc, ValueError):
        return JSONResponse({"message": "Invalid request", "details": str(exc)}, status_code=400)
    return JSONResponse({"message": "Internal Server Error", "details": str(exc)}, status_code=500)


async def _first_chunk(stream: AsyncIterator[StreamChunk]) -> Optional[StreamChunk]:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return None


async def event_stream(
    result: OrchestrationResult,
    first: Optional[StreamChunk],
) -> AsyncIterator[str]:
    """
    Render one orchestration as SSE.

    The upstream stream is closed in ``finally`` so a client disconnect
    releases the provider connection.
    """
    yield sse_event({
        "type": "metadata",
        "intent": result.intent.value,
        "model": result.model,
        "articles": [a.citation_metadata() for a in result.final_articles],
    })

    length = 0
    try:
        if first is not None:
            length += len(first.text)
            yield sse_event({"type": "text", "content": first.text})

        async for chunk in result.stream:
            length += len(chunk.text)
            yield sse_event({"type": "text", "content": chunk.text})

        if length == 0:
            tool_calls = len(result.normalizer.tool_calls) if result.normalizer else 0
            logger.warning(
                "Empty answer | Model: %s | Tool calls requested: %d", result.model, tool_calls,
            )
            message = "The model returned no answer text"
            if tool_calls:
                message += f" (it requested {tool_calls} tool call(s) instead)"
            yield sse_event({"type": "error", "message": message})
            return

        logger.info("Stream complete | Model: %s | Length: %d", result.model, length)
    except Exception as e:
        logger.exception("SSE stream error after %d chars", length)
        yield sse_event({"type": "error", "message": str(e)})
    finally:
        await result.stream.aclose()


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health(request: Request):
    """Health check endpoint"""
    config: Optional[BriefchatConfig] = getattr(request.app.state, "config", None)
    orchestrator = getattr(request.app.state, "orchestrator", None)
    return {
        "status": "healthy",
        "service": "briefchat",
        "initialized": orchestrator is not None,
        "providers": {
            "google": bool(config and any(config.google.api_keys.values())),
            "siliconflow": bool(config and config.siliconflow.api_key),
        },
        "store_configured": bool(config and config.store.url and config.store.service_key),
        "router_enabled": bool(config and config.router.enabled),
    }


@app.get("/models")
async def list_models(request: Request):
    """Selectable chat models"""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    return {
        "default": getattr(orchestrator, "default_model", DEFAULT_CHAT_MODEL),
        "models": [spec.to_dict() for spec in MODEL_CATALOG],
    }


@app.post("/api/ai/chat")
async def chat(body: ChatRequest, request: Request):
    """
    Answer the last user message of a conversation.

    Errors raised before the first chunk (validation, retrieval, provider
    quota) come back as JSON; later ones as a final error event.
    """
    orchestrator: Optional[ChatOrchestrator] = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Orchestrator not initialized")

    result = None
    try:
        result = await orchestrator.orchestrate(body)
        first = await _first_chunk(result.stream)
    except Exception as e:
        logger.error("AI chat error: %s", e)
        if result is not None:
            await result.stream.aclose()
        return error_response(e)

    logger.info(
        "Request handled | Model: %s | Provider: %s | Intent: %s | Context: %d articles",
        result.model, result.provider, result.intent.value, len(result.final_articles),
    )
    return StreamingResponse(
        event_stream(result, first),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Briefchat server"""
    import uvicorn

    load_dotenv()
    ensure_directories()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(LOGS_DIR / "server.log", encoding="utf-8"),
        ],
    )

    config = load_config()
    logger.info("Starting server on %s:%d", config.server.host, config.server.port)
    uvicorn.run(
        "briefchat.responder.server:app",
        host=config.server.host,
        port=config.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
