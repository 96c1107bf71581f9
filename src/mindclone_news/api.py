"""HTTP trigger for the scheduled curation run."""

import hmac
import logging
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mindclone_news.config import settings
from mindclone_news.curator import CurationRunError, NewsCurator, create_curator, record_failed_run
from mindclone_news.storage import CurationDatabase

logger = logging.getLogger(__name__)

CURATOR_PATH = "/api/cron/news-curator"

app = FastAPI(title="Mindclone News Curator")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(CurationRunError)
async def curation_run_error_handler(request: Request, exc: CurationRunError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def get_curator() -> NewsCurator:
    """Build the curator, recording a failed run if it cannot be set up."""
    db = CurationDatabase()
    try:
        return create_curator(db)
    except Exception as e:
        logger.exception(f"Could not set up curation run: {e}")
        record_failed_run(db, e)
        raise CurationRunError("Curation run could not start") from e


def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """Reject requests that do not carry the scheduler's bearer token."""
    secret = settings.cron_secret
    if not secret or not authorization or not hmac.compare_digest(
        authorization, f"Bearer {secret}"
    ):
        logger.error("Unauthorized cron request")
        raise HTTPException(status_code=401, detail="Unauthorized")


@app.options(CURATOR_PATH)
def news_curator_options() -> Response:
    return Response(status_code=200)


@app.get(CURATOR_PATH, dependencies=[Depends(verify_cron_secret)])
async def news_curator(curator: NewsCurator = Depends(get_curator)) -> Any:
    """Run one hourly curation pass and report what happened."""
    logger.info("Starting hourly curation run")

    summary = await curator.run_batch()

    if not summary.results:
        return {"status": "success", "message": "No users to process"}

    return {
        "status": "success",
        "summary": summary.model_dump(mode="json", exclude={"results"}),
        "results": summary.public_results(),
    }
