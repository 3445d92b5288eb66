from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from app.middlewares.auth_middleware import require_admin
from app.services.subscriber_service import (
    SubscriberService,
    get_subscriber_service,
)
from app.utils.datetime_utils import utc_now
from app.utils.responses import ResponseBuilder

subscribers_router = APIRouter(dependencies=[Depends(require_admin)])


@subscribers_router.get(
    "",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="List subscribers",
    description="Newest first. Search matches the contact number or the external id.",
)
async def list_subscribers(
    request: Request,
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(
        default=25, ge=1, le=1000, alias="pageSize", description="Items per page"
    ),
    search: Optional[str] = Query(default=None, description="Search term"),
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    results, total = await subscriber_service.list_subscribers(
        page=page, page_size=page_size, search=search
    )
    return ResponseBuilder.paginated(
        request=request,
        results=results,
        page=page,
        page_size=page_size,
        total=total,
        message=f"Retrieved {len(results)} subscriber{'s' if len(results) != 1 else ''}",
    )


@subscribers_router.get(
    "/stats",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Subscriber statistics",
)
async def get_subscriber_stats(
    request: Request,
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    stats = await subscriber_service.get_stats()
    data = stats.model_dump(by_alias=True)
    data["lastUpdated"] = utc_now().isoformat()
    return ResponseBuilder.success(
        request=request, data=data, message="Subscriber statistics retrieved"
    )


@subscribers_router.get(
    "/export",
    response_model=None,
    status_code=status.HTTP_200_OK,
    summary="Export all subscribers as CSV or JSON",
)
async def export_subscribers(
    request: Request,
    export_format: Literal["csv", "json"] = Query(default="csv", alias="format"),
    include_groups: bool = Query(default=False, alias="includeGroups"),
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    rows = await subscriber_service.export_rows(include_groups=include_groups)
    export_date = utc_now()

    if export_format == "json":
        return ResponseBuilder.success(
            request=request,
            data={
                "total": len(rows),
                "exportDate": export_date.isoformat(),
                "data": rows,
            },
            message=f"Exported {len(rows)} subscribers",
        )

    filename = f"all_subscribers_{export_date.date().isoformat()}.csv"
    return Response(
        content=SubscriberService.to_csv(rows, include_groups=include_groups),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
