from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routes.extraction import router as extraction_router
from src.api.routes.profile import router as profile_router
from src.api.routes.review import router as review_router
from src.api.routes.timeline import router as timeline_router
from src.config import settings
from src.logging_config import configure_logging

configure_logging(settings.log_level)

app = FastAPI(
    title="Session Extraction API",
    description="LLM extraction, human review and profile mapping for client sessions",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_origin_regex=r"https://.*\.vercel\.app|http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(extraction_router)
app.include_router(review_router)
app.include_router(profile_router)
app.include_router(timeline_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
