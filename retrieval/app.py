from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from common.exceptions import (
    DegenerateVector,
    DimensionMismatch,
    EmptyIndex,
    InvalidConfiguration,
    ServiceUnavailableError,
)

from .config import RetrievalConfig
from .models import IngestReport, IngestRequest, QueryRequest, RetrievalResponse
from .service import Retriever


def to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (InvalidConfiguration, DimensionMismatch, DegenerateVector)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, EmptyIndex):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ServiceUnavailableError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def create_app(
    retriever: Retriever | None = None,
    config: RetrievalConfig | None = None,
    close_on_shutdown: bool | None = None,
) -> FastAPI:
    """
    Build the retrieval API.

    The retriever is closed on shutdown when the app created it, or when
    ``close_on_shutdown`` is set.
    """
    cfg = config or (retriever.config if retriever else RetrievalConfig.from_env())
    if close_on_shutdown is None:
        close_on_shutdown = retriever is None
    service = retriever or Retriever.from_config(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if close_on_shutdown:
            service.close()

    app = FastAPI(
        title="Retrieval Service",
        version="1.0.0",
        description="Chunking, embedding and vector retrieval API.",
        lifespan=lifespan,
    )
    app.state.retriever = service

    @app.get("/health")
    def health() -> dict:
        try:
            records = service.index.count()
        except Exception as exc:
            raise to_http_error(exc) from exc
        return {"status": "ok", "records": records}

    @app.post("/ingest", response_model=IngestReport)
    def ingest(request: IngestRequest) -> IngestReport:
        try:
            return service.ingest(
                request.text,
                config=request.chunking_config(service.config.chunking),
                document_id=request.document_id,
            )
        except Exception as exc:
            raise to_http_error(exc) from exc

    @app.post("/retrieve", response_model=RetrievalResponse)
    def retrieve(request: QueryRequest) -> RetrievalResponse:
        try:
            hits = service.retrieve(request.query, top_k=request.top_k)
        except Exception as exc:
            raise to_http_error(exc) from exc
        return RetrievalResponse(
            query=request.query,
            results=hits,
            contexts=[hit.text for hit in hits],
        )

    return app
