import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.config import LOG_LEVEL
from core.errors import InputValidationError, InvalidTransitionError, JobNotFoundError
from interview_prep.schemas import CandidateHighlights, GradingResult, JobStatusView, JobSummary
from interview_prep.service import InterviewPrepService, build_default_service

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    job_reference: str | None = None
    resume_text: str | None = None
    profile_reference: str | None = None


class GenerateResponse(BaseModel):
    id: str
    message: str


class GradeRequest(BaseModel):
    question: str | None = None
    response_text: str | None = None
    interview_id: str | None = None
    highlights: CandidateHighlights | None = None


class GradeResponse(BaseModel):
    available: bool
    grading: GradingResult | None = None


async def _sweep_forever(service: InterviewPrepService, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            service.sweep()
        except Exception:
            logger.exception("Interview prep sweep failed")


def create_app(service: InterviewPrepService | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.service is None:
            app.state.service = build_default_service()
        svc: InterviewPrepService = app.state.service
        sweeper = asyncio.create_task(_sweep_forever(svc, svc.settings.sweep_interval_seconds))
        logger.info("Interview prep API started")
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
            svc.close()
            logger.info("Interview prep API stopped")

    app = FastAPI(
        title="Interview Prep API",
        description="Backend API for multi-stage interview preparation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InputValidationError)
    async def _input_invalid(request: Request, exc: InputValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc), "problems": exc.problems})

    @app.exception_handler(JobNotFoundError)
    async def _not_found(request: Request, exc: JobNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def _conflict(request: Request, exc: InvalidTransitionError):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    def _service(request: Request) -> InterviewPrepService:
        return request.app.state.service

    @app.get("/")
    async def root():
        return {"service": "Interview Prep API", "status": "running", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "timestamp": datetime.now().isoformat()}

    @app.post("/api/interview/generate", status_code=202, response_model=GenerateResponse)
    async def generate_interview_prep(
        body: GenerateRequest, request: Request, background_tasks: BackgroundTasks
    ):
        svc = _service(request)
        job_id = svc.submit(body.job_reference, body.profile_reference, body.resume_text)
        background_tasks.add_task(svc.run, job_id)
        return GenerateResponse(id=job_id, message="Interview preparation started")

    @app.get("/api/interview/status/{job_id}", response_model=JobStatusView)
    async def get_interview_status(job_id: str, request: Request):
        return _service(request).get_status(job_id)

    @app.get("/api/interview/history", response_model=list[JobSummary])
    async def get_interview_history(request: Request, limit: int = Query(10, ge=1, le=100)):
        return _service(request).history(limit)

    @app.post("/api/interview/response/grade", response_model=GradeResponse)
    async def grade_interview_response(body: GradeRequest, request: Request):
        grading = await _service(request).grade(
            body.question,
            body.response_text,
            highlights=body.highlights,
            interview_id=body.interview_id,
        )
        return GradeResponse(available=grading is not None, grading=grading)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
