"""FastAPI JSON API for Inbox Classifier.

Objective:
    Expose the fetch and classify workflow implemented in
    :mod:`inbox_classifier.orchestrator` over HTTP. This module intentionally
    keeps business logic inside the orchestrator and only handles request
    parsing and response rendering.

High-level call tree:
    - :func:`create_app`:
        - defines routes:
            - ``GET /health`` -> :func:`health`
            - ``POST /api/emails/fetch`` -> :func:`fetch_emails`
            - ``POST /api/emails/classify`` -> :func:`classify_emails`
            - ``POST /api/emails/run`` -> :func:`run_pipeline`
    - :func:`get_orchestrator`:
        - returns a new :class:`inbox_classifier.orchestrator.PipelineOrchestrator`.

Data flow:
    - HTTP request -> parse inputs -> call orchestrator -> serialize result
      model with its ``status_code``.

Operational notes:
    - The Gmail access token is read from ``Authorization: Bearer <token>``.
      The server never stores tokens or API keys.
    - For tests, :func:`get_orchestrator` is overridden via
      ``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .orchestrator import PipelineOrchestrator


def get_orchestrator() -> PipelineOrchestrator:
    """Create a :class:`~inbox_classifier.orchestrator.PipelineOrchestrator`.

    This function exists primarily to support FastAPI dependency injection and
    testing. Tests can override this dependency with a stub object.

    Returns:
        PipelineOrchestrator: A new orchestrator instance.
    """

    return PipelineOrchestrator()


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer`` header.

    Args:
        authorization: Raw header value.

    Returns:
        Optional[str]: Token, or None if the header is missing or not Bearer.
    """

    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _render(result: BaseModel) -> JSONResponse:
    return JSONResponse(
        result.model_dump(mode="json", by_alias=True),
        status_code=result.status_code,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Routes:
        - ``GET /health``:
            Basic liveness check.
        - ``POST /api/emails/fetch``:
            Fetches and normalizes recent messages. Body: ``{"limit": 15}``.
        - ``POST /api/emails/classify``:
            Classifies messages supplied in the body.
        - ``POST /api/emails/run``:
            Fetches then classifies. Body:
            ``{"provider": "openai", "credential": "...", "limit": 15}``.

    Returns:
        FastAPI: FastAPI app.
    """

    app = FastAPI(title="Inbox Classifier", version=__version__)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint.

        This is intentionally simple and should not perform external calls.

        Returns:
            dict[str, str]: Health payload.
        """

        return {"status": "ok"}

    @app.post("/api/emails/fetch")
    def fetch_emails(
        payload: Optional[dict[str, Any]] = Body(default=None),
        authorization: Optional[str] = Header(default=None),
        orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    ) -> JSONResponse:
        """Fetch the most recent messages.

        Args:
            payload: Optional JSON body with ``limit``.
            authorization: Authorization header.
            orchestrator: Orchestrator dependency.

        Returns:
            JSONResponse: Serialized :class:`FetchResult`.
        """

        limit = (payload or {}).get("limit")
        result = orchestrator.fetch_messages(
            bearer_token(authorization),
            limit=limit if isinstance(limit, int) and limit > 0 else None,
        )
        return _render(result)

    @app.post("/api/emails/classify")
    def classify_emails(
        payload: Any = Body(default=None),
        orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    ) -> JSONResponse:
        """Classify messages supplied by the client.

        Expected request body:
            ``{"messages": [...], "provider": "gemini", "geminiKey": "..."}``

        The body is left unvalidated here so that malformed requests are
        reported by the orchestrator's own 400 responses.

        Args:
            payload: JSON request body.
            orchestrator: Orchestrator dependency.

        Returns:
            JSONResponse: Serialized :class:`PipelineResult`.
        """

        return _render(orchestrator.classify_messages(payload))

    @app.post("/api/emails/run")
    def run_pipeline(
        payload: Optional[dict[str, Any]] = Body(default=None),
        authorization: Optional[str] = Header(default=None),
        orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    ) -> JSONResponse:
        """Fetch recent messages and classify them.

        Args:
            payload: JSON body with ``provider``, ``credential`` and ``limit``.
            authorization: Authorization header.
            orchestrator: Orchestrator dependency.

        Returns:
            JSONResponse: Serialized :class:`PipelineResult`.
        """

        payload = payload or {}
        provider = payload.get("provider")
        credential = payload.get("credential")
        if credential is None and isinstance(provider, str):
            credential = payload.get(f"{provider}Key")
        limit = payload.get("limit")

        result = orchestrator.run(
            bearer_token(authorization),
            provider,
            credential,
            limit=limit if isinstance(limit, int) and limit > 0 else None,
        )
        return _render(result)

    return app


app = create_app()
