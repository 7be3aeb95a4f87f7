"""
FastAPI Backend for PLT Nesting

REST API for decoding plotter files into pattern pieces and nesting
them on a fabric roll.
Run with: uvicorn backend.main:app --reload
"""

import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .config import LOG_LEVEL, NestingConfig, meters_to_units
from .logs import LogCollector, setup_logging
from .models import (
    DecodeRequest,
    DecodeResponse,
    DecodeResult,
    ErrorResponse,
    NestRequest,
    NestResponse,
    Segment,
)
from .nesting import NestingEngine, validate_inputs
from .plt_parser import parse_plt
from .worker import NestingWorker

setup_logging(getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="PLT Nesting API",
    description="Decode PLT pattern files and nest the pieces on a fabric roll",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS for web UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Current pattern lives for the lifetime of the process only
current_pattern: Optional[DecodeResult] = None
run_log = LogCollector()


@app.get("/", tags=["Root"])
async def root():
    """API root endpoint"""
    return {
        "message": "PLT Nesting API v1.0",
        "docs": "/docs",
        "health": "/health"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "pattern_loaded": current_pattern is not None,
        "segments_count": len(current_pattern.segments) if current_pattern else 0
    }


# ============================================================================
# PATTERN ENDPOINTS
# ============================================================================

@app.post("/api/decode", response_model=DecodeResponse, tags=["Pattern"])
async def decode_pattern(request: DecodeRequest):
    """
    Decode PLT text and make it the current pattern

    - **content**: raw plotter text (any line endings)
    - **filename**: optional, only used in the log

    Never fails on unrecognised content: the result falls back to an
    example square with method "example".
    """
    global current_pattern
    run_log.clear()
    run_log(f"Loading file {request.filename or '<inline>'}", "info")

    result = parse_plt(request.content, run_log)
    current_pattern = result
    run_log("File processed successfully", "success")
    return DecodeResponse(result=result, logs=run_log.entries)


@app.get("/api/pattern", response_model=DecodeResult, tags=["Pattern"])
async def get_pattern():
    """Get the current decoded pattern"""
    if current_pattern is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pattern loaded"
        )
    return current_pattern


@app.get("/api/pattern/segments", response_model=List[Segment], tags=["Pattern"])
async def get_segments():
    """Get the named segments of the current pattern"""
    if current_pattern is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pattern loaded"
        )
    return current_pattern.segments


@app.delete("/api/pattern", tags=["Pattern"])
async def clear_pattern():
    """Forget the current pattern"""
    global current_pattern
    current_pattern = None
    run_log.clear()
    return {"message": "Pattern cleared"}


@app.get("/api/logs", tags=["Logs"])
async def get_logs():
    """Log trail of the last decode or nesting run"""
    return run_log.dump()


# ============================================================================
# NESTING ENDPOINTS
# ============================================================================

def _resolve_segments(request: NestRequest) -> List[Segment]:
    if request.segments is not None:
        return request.segments
    return current_pattern.segments if current_pattern else []


def _fabric_width(request: NestRequest, config: NestingConfig) -> float:
    width_m = request.fabric_width_m
    if width_m is None:
        width_m = config.default_fabric_width_m
    return meters_to_units(width_m, config.units_per_meter)


@app.post("/api/nest", response_model=NestResponse, tags=["Nesting"])
async def nest_pieces(request: NestRequest):
    """
    Run the nesting algorithm

    Places pieces largest first on a roll of ``fabric_width_m`` meters,
    trying four rotations each. Uses the segments in the request, or the
    current pattern when none are given.
    """
    config = request.config or NestingConfig()
    segments = _resolve_segments(request)
    fabric_width = _fabric_width(request, config)

    message = validate_inputs(fabric_width, segments)
    if message:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )

    log = LogCollector()
    try:
        engine = NestingEngine(
            fabric_width,
            segments,
            log=log,
            config=config,
            enabled_names=request.enabled_names,
            large_only=request.large_only,
        )
        result = await engine.perform_nesting()
    except Exception as e:
        logger.exception("Nesting failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Nesting failed: {str(e)}"
        )

    run_log.entries = list(log.entries)
    return NestResponse(
        result=result,
        logs=log.entries,
        message=f"Placed {len(result.pieces)} of {sum(1 for p in engine.pieces if p.enabled)} pieces, "
                f"{result.efficiency:.2f}% efficiency"
    )


@app.post("/api/nest/stream", tags=["Nesting"])
def nest_pieces_stream(request: NestRequest):
    """
    Run the nesting algorithm in a background worker

    Streams newline-delimited JSON messages: ``log`` entries as they happen,
    then one ``result`` or ``error`` message.
    """
    config = request.config or NestingConfig()
    worker = NestingWorker(
        _fabric_width(request, config),
        _resolve_segments(request),
        config=config,
        enabled_names=request.enabled_names,
        large_only=request.large_only,
    )

    def stream():
        for msg in worker.messages():
            yield msg.model_dump_json() + "\n"

    return StreamingResponse(stream(), media_type="application/x-ndjson")


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Custom HTTP exception handler"""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.detail,
            detail=str(exc),
            logs=run_log.dump()
        ).model_dump()
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
