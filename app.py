"""CallPulse — real-time call analysis API."""

import sys

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import settings
from config.schemas import LiveAnalysisRequest, LiveAnalysisResponse
from pipeline.orchestrator import run_live_analysis

logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL)

app = FastAPI(
    title="CallPulse",
    description="Heuristic live call analysis — transcript chunks to call health, coaching, insights and summary",
    version="0.1.0",
)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health():
    """Health check — engine configuration."""
    return {
        "status": "healthy",
        "window_ms": settings.WINDOW_MS,
        "max_chunks": settings.MAX_CHUNKS,
        "analysis_chunk_budget": settings.ANALYSIS_CHUNK_BUDGET,
        "log_level": settings.LOG_LEVEL,
    }


@app.post("/api/meetings/{meeting_id}/live-analysis", response_model=LiveAnalysisResponse)
def live_analysis(meeting_id: str, request: LiveAnalysisRequest):
    """Analyse the latest transcript chunks of a meeting.

    Stateless: the caller sends the chunk snapshot each time. Body fields are
    camelCase (enabled, mode, privacyMode, useHeuristics, sensitivity,
    coachingAggressiveness, chunks, partialText, nowMs).
    """
    meeting_id = meeting_id.strip()
    if not meeting_id:
        raise HTTPException(status_code=400, detail="meeting_id must not be blank")

    logger.info(
        f"[{meeting_id}] Live analysis request: enabled={request.enabled}, "
        f"mode={request.mode.value}, chunks={len(request.chunks)}, privacy={request.privacy_mode}"
    )
    try:
        return run_live_analysis(meeting_id, request)
    except Exception as e:
        logger.error(f"[{meeting_id}] Live analysis failed: {e}")
        raise HTTPException(status_code=500, detail="Live analysis failed") from e


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
