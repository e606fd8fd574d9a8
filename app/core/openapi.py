"""
OpenAPI schema customizations for drf-spectacular.

This module provides hooks to customize the generated OpenAPI schema:
natural language summaries for the simplejwt endpoints (which carry no
@extend_schema of their own) and tag descriptions for ReDoc.

Tags:
- Auth (login, token refresh, current user)
- Transactions (checkout and the escrow lifecycle)
- Payments (payout account onboarding)
- Shipping (tracking, tax, rates)
- Notifications (inbox)
- Cron (scheduled job triggers)
"""

# Natural language summaries for simplejwt endpoints
# Maps operation_id to (summary, description)
TOKEN_ENDPOINT_SUMMARIES = {
    "auth_token_create": (
        "Log in",
        "Authenticate with email and password to receive JWT tokens.",
    ),
    "auth_token_refresh_create": (
        "Refresh access token",
        "Get a new access token using a valid refresh token.",
    ),
}

TAG_DESCRIPTIONS = [
    {
        "name": "Auth",
        "description": "Login, token refresh and the current user.",
    },
    {
        "name": "Transactions",
        "description": (
            "Escrowed purchases: checkout, shipment, disputes and admin resolution. "
            "Funds are held until delivery is confirmed by the carrier and the "
            "review window passes."
        ),
    },
    {
        "name": "Payments",
        "description": "Seller payout account onboarding and status.",
    },
    {
        "name": "Shipping",
        "description": "Carrier tracking, sales tax estimates and shipping rates.",
    },
    {
        "name": "Notifications",
        "description": "In-app notification inbox for buyers and sellers.",
    },
    {
        "name": "Cron",
        "description": "Scheduled job triggers, authorized with the shared cron secret.",
    },
]


def group_auth_endpoints(result, generator, request, public):
    """
    Postprocessing hook to group API endpoints by function.

    Token endpoints are tagged "Auth" and given readable summaries; other
    endpoints set their tags with tags= in @extend_schema.
    """
    paths = result.get("paths", {})

    for path, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId", "")

            if operation_id in TOKEN_ENDPOINT_SUMMARIES:
                summary, description = TOKEN_ENDPOINT_SUMMARIES[operation_id]
                operation["summary"] = summary
                operation["description"] = description

            if operation_id.startswith("auth_"):
                operation["tags"] = ["Auth"]

    result["tags"] = TAG_DESCRIPTIONS

    return result
