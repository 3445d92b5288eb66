from fastapi import APIRouter, Depends, Request, status

from app.schemas.subscriber_schemas import (
    RegisterSubscriberRequest,
    RegisterSubscriberResponse,
    SubscriberStatusRequest,
    UnsubscribeRequest,
)
from app.services.subscriber_service import (
    SubscriberService,
    get_subscriber_service,
)
from app.utils.error_handlers import handle_service_error
from app.utils.responses import ResponseBuilder

subscriptions_router = APIRouter()


@subscriptions_router.post(
    "/register",
    response_model=None,
    summary="Register or update a subscriber's contact number",
)
async def register_subscriber(
    request: Request,
    registration: RegisterSubscriberRequest,
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    try:
        subscriber, is_new, message = await subscriber_service.register(
            registration.external_id, registration.contact
        )
    except ValueError as e:
        return handle_service_error(request, e)

    return ResponseBuilder.success(
        request=request,
        data=RegisterSubscriberResponse(
            message=message, subscriber=subscriber, is_new=is_new
        ).model_dump(by_alias=True),
        message=message,
        status_code=status.HTTP_201_CREATED if is_new else status.HTTP_200_OK,
    )


@subscriptions_router.post(
    "/status",
    response_model=None,
    summary="Check whether a player id is registered",
)
async def subscriber_status(
    request: Request,
    status_request: SubscriberStatusRequest,
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    status_response = await subscriber_service.get_status(status_request.external_id)
    return ResponseBuilder.success(
        request=request,
        data=status_response.model_dump(by_alias=True),
        message="Subscribed" if status_response.subscribed else "Not subscribed",
    )


@subscriptions_router.post(
    "/unsubscribe",
    response_model=None,
    summary="Remove a subscriber from every group",
)
async def unsubscribe(
    request: Request,
    unsubscribe_request: UnsubscribeRequest,
    subscriber_service: SubscriberService = Depends(get_subscriber_service),
):
    try:
        subscriber_id = await subscriber_service.unsubscribe(
            external_id=unsubscribe_request.external_id,
            contact=unsubscribe_request.contact,
        )
    except ValueError as e:
        return handle_service_error(request, e)

    return ResponseBuilder.success(
        request=request,
        data={"message": "Successfully unsubscribed", "subscriberId": subscriber_id},
        message="Successfully unsubscribed",
    )
