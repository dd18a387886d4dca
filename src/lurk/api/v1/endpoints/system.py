"""System and transparency endpoints for the Lurk API."""

from fastapi import APIRouter

from lurk.api.v1.dependencies import BoardDep

router = APIRouter(tags=["system"])


@router.get("/config")
async def get_public_config(board: BoardDep) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Clients use it to render the reaction bar, expiry timers and upload hints.
    """
    return board.settings.public_config


@router.get("/stats")
async def get_stats(board: BoardDep) -> dict[str, object]:
    """Expose live counters for the board, without any identifying data."""
    scheduler = board.scheduler
    return {
        "threads": len(board.store),
        "connections": len(board.hub),
        "videoRooms": len(board.signaling.rooms()),
        "purge": {
            "ticks": scheduler.stats.ticks,
            "purged": scheduler.stats.purged,
            "orphansRemoved": scheduler.stats.orphans_removed,
            "lastRun": scheduler.stats.last_run.isoformat() if scheduler.stats.last_run else None,
        },
    }
