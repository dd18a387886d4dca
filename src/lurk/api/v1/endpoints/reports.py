"""Abuse report endpoint for the Lurk API."""

from fastapi import APIRouter, Depends, Request, status

from lurk.api.v1.dependencies import BoardDep, client_identity, rate_limited
from lurk.schemas import ReportAccepted, ReportCreate

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post(
    "",
    response_model=ReportAccepted,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(rate_limited("submit-report"))],
)
async def submit_report(
    report_data: ReportCreate,
    request: Request,
    board: BoardDep,
) -> ReportAccepted:
    """Record an abuse report.

    Unknown reasons are filed as ``other`` and referenced ids are not checked,
    since the reported content may already have expired. The write happens in
    the background; the caller is acknowledged immediately.
    """
    report = board.reports.build(
        reason=report_data.reason,
        details=report_data.details,
        thread_id=report_data.thread_id,
        reply_id=report_data.reply_id,
        reporter=client_identity(request, board.settings.trust_forwarded_for),
    )
    board.reports.submit(report)
    return ReportAccepted(ok=True)
