"""
Field-force coverage API

Start with:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
import logging

from config import client, CORS_ORIGINS
from services.errors import FieldForceError

# Logging configuration
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("fieldforce")

app = FastAPI(
    title="Field-force coverage API",
    description="Doctor coverage plans, visit ledger and beat plans for medical representatives",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ERROR RENDERING ====================

@app.exception_handler(FieldForceError)
async def fieldforce_error_handler(request: Request, exc: FieldForceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        messages.append(f"{field}: {err.get('msg')}" if field else err.get("msg", "Invalid input"))
    message = "; ".join(messages) or "Invalid input"
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": message, "detail": message}
    )


# ==================== ROUTES ====================

from routes import auth, coverage, visits, beat_plans

app.include_router(auth.router, prefix="/api")
app.include_router(coverage.router, prefix="/api")
app.include_router(visits.router, prefix="/api")
app.include_router(beat_plans.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": "Field-force coverage API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== LIFECYCLE ====================

@app.on_event("startup")
async def startup():
    from services.indexes import ensure_indexes

    await ensure_indexes()
    logger.info("Field-force API started")


@app.on_event("shutdown")
async def shutdown():
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
