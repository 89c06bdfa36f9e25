from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from .dag import JobGraph, build_graph
from .evaluator import evaluate
from .events import event_from_webhook
from .model import EventError
from .pipeline import release_pipeline


# -------------------- Schemas --------------------

class DecisionResponse(BaseModel):
    job: str
    scheduled: bool
    reason: str


class EventResponse(BaseModel):
    kind: str
    ref: str
    is_tag: bool
    branch: str
    pr_action: Optional[str] = None


class PlanResponse(BaseModel):
    event: EventResponse
    jobs: list[DecisionResponse]


class JobInfo(BaseModel):
    name: str
    needs: list[str]
    when: str
    secrets: list[str]


def create_app(graph: JobGraph | None = None) -> FastAPI:
    """
    Webhook receiver. The graph is validated once here, so a broken
    workflow stops the app from starting rather than failing per delivery.
    """
    graph = graph or build_graph(release_pipeline())
    app = FastAPI(title="refgate")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/jobs", response_model=list[JobInfo])
    async def list_jobs():
        return [
            JobInfo(
                name=j.name,
                needs=list(j.needs),
                when=j.run_condition.describe(),
                secrets=sorted(j.secrets),
            )
            for j in graph
        ]

    @app.post("/webhook", response_model=PlanResponse)
    async def webhook(
        payload: dict[str, Any],
        x_github_event: str = Header(...),
    ):
        try:
            event = event_from_webhook(x_github_event, payload)
        except EventError as e:
            raise HTTPException(status_code=422, detail=str(e))
        return evaluate(event, graph).to_dict()

    return app


app = create_app()
