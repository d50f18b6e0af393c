"""
Sync status endpoints.
"""

from fastapi import APIRouter, Depends

from pos_api.core.dependencies import current_user, get_runtime
from pos_api.core.lifespan import Runtime
from pos_api.routers.pos_schemas import NoticeOutput, SyncStatusOutput


router = APIRouter(prefix="/api/sync", tags=["sync"], dependencies=[Depends(current_user)])


def _notices(notices) -> list[NoticeOutput]:
    return [NoticeOutput(message=n.message, level=n.level, timestamp=n.timestamp) for n in notices]


@router.get("/status", response_model=SyncStatusOutput)
def sync_status(runtime: Runtime = Depends(get_runtime)) -> SyncStatusOutput:
    """Offline flag, last reconciliation and pending notices (not drained)."""
    return SyncStatusOutput(
        offline=runtime.gateway.is_offline,
        remote_configured=runtime.gateway.remote_configured,
        policy=runtime.reconciliation.policy,
        last_reconciled_at=runtime.state.last_reconciled_at,
        notices=_notices(runtime.state.notices()),
        breaker=runtime.gateway.breaker.get_stats(),
    )


@router.post("/notices/drain", response_model=list[NoticeOutput])
def drain_notices(runtime: Runtime = Depends(get_runtime)) -> list[NoticeOutput]:
    return _notices(runtime.state.drain_notices())


@router.post("/reconcile", response_model=SyncStatusOutput)
def reconcile(runtime: Runtime = Depends(get_runtime)) -> SyncStatusOutput:
    """Pull the full snapshot now."""
    runtime.reconciliation.reconcile_once()
    return sync_status(runtime)
