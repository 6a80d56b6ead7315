import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from .lib.ai import AIClient
from .lib.elasticsearch import create_client, ensure_indices
from .lib.maintenance import ProfileRefresher
from .lib.scoring import ScoreCache
from .routers import feed, health, maintenance, recommendations
from .security import verify_api_key

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("elastic_transport").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Clients live on app.state; tests assign fakes there instead of
    # entering the lifespan.
    app.state.es = create_client()
    app.state.ai = AIClient.from_env()
    app.state.score_cache = ScoreCache()
    app.state.profile_refresher = ProfileRefresher()
    if not app.state.ai.enabled:
        logger.warning("AI_API_KEY not set; ranking falls back to chronological order")
    await ensure_indices(app.state.es, app.state.ai.embedding_dimensions)

    yield

    await app.state.profile_refresher.aclose()
    await app.state.ai.aclose()
    await app.state.es.close()


app = FastAPI(
    title="Moment Ranker",
    description="Personalized ranking and weighted shuffling of moments for feed and explore",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(recommendations.router)
app.include_router(feed.router)
app.include_router(maintenance.router)


@app.get("/", dependencies=[Depends(verify_api_key)])
async def root():
    return {"message": "Moment Ranker"}
