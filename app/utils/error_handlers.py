from fastapi import Request, status

from app.utils.responses import ResponseBuilder


# Error code to status code mapping
ERROR_STATUS_MAPPING = {
    # Group errors
    "GROUP_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "GROUP_NAME_REQUIRED": status.HTTP_400_BAD_REQUEST,
    "GROUP_NAME_EXISTS": status.HTTP_409_CONFLICT,
    "DEFAULT_GROUP_PROTECTED": status.HTTP_403_FORBIDDEN,
    # Subscriber errors
    "SUBSCRIBER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SUBSCRIBER_ALREADY_EXISTS": status.HTTP_409_CONFLICT,
    "INVALID_CONTACT": status.HTTP_400_BAD_REQUEST,
    "CONTACT_ALREADY_REGISTERED": status.HTTP_409_CONFLICT,
    # Notification errors
    "NOTIFICATION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOTIFICATION_NOT_SCHEDULED": status.HTTP_409_CONFLICT,
}

# Error code to user-friendly message mapping
ERROR_MESSAGES = {
    # Group errors
    "GROUP_NOT_FOUND": "Group not found",
    "GROUP_NAME_REQUIRED": "Group name is required",
    "GROUP_NAME_EXISTS": "Group name already exists",
    "DEFAULT_GROUP_PROTECTED": "Default group cannot be deleted or renamed",
    # Subscriber errors
    "SUBSCRIBER_NOT_FOUND": "Subscriber not found",
    "SUBSCRIBER_ALREADY_EXISTS": "Subscriber with this external id already exists",
    "INVALID_CONTACT": "Invalid mobile number format",
    "CONTACT_ALREADY_REGISTERED": "This mobile number is already registered with another device",
    # Notification errors
    "NOTIFICATION_NOT_FOUND": "Notification not found",
    "NOTIFICATION_NOT_SCHEDULED": "Only scheduled notifications can be cancelled",
}


def handle_service_error(request: Request, error: Exception):
    """Centralized service error handler for routers using ValueError codes"""
    error_message = str(error)

    # Codes may carry details (format: "ERROR_CODE: details")
    if ":" in error_message:
        error_code, details = error_message.split(":", 1)
        details = details.strip()
    else:
        error_code, details = error_message, ""

    status_code = ERROR_STATUS_MAPPING.get(
        error_code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    message = ERROR_MESSAGES.get(error_code, "An unexpected error occurred")
    if details:
        message = f"{message}: {details}"

    return ResponseBuilder.error(
        request=request,
        message=message,
        error_code=error_code,
        status_code=status_code,
    )
