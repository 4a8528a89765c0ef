"""
OpenAPI schema customizations for drf-spectacular.

This module provides hooks to customize the generated OpenAPI schema,
including summaries and tag groupings for better documentation
organization in ReDoc/Swagger UI.

Tag naming follows the pattern: [App Name] - [Group Name]
Examples:
- Payments (authorize, capture, refund, cancel)
- Payments - Lookup (payment and order payment retrieval)
"""

# Natural language summaries for endpoints whose views do not set one
# Maps operation_id to (summary, description)
PAYMENT_SUMMARIES = {
    "get_payment": (
        "Get payment",
        "Retrieve a payment with its merchant splits and refunds.",
    ),
    "get_order_payment": (
        "Get latest payment for an order",
        "Retrieve the most recent payment created for the order.",
    ),
}

LOOKUP_OPERATIONS = frozenset(PAYMENT_SUMMARIES)


def group_payment_endpoints(result, generator, request, public):
    """
    Postprocessing hook to group payment endpoints by function.

    Groups:
        - Payments: lifecycle operations (authorize, capture, refund, cancel)
        - Payments - Lookup: read-only retrieval

    Also fills in summaries for lookup endpoints.
    """
    paths = result.get("paths", {})

    for path, methods in paths.items():
        for method, operation in methods.items():
            if not isinstance(operation, dict):
                continue

            operation_id = operation.get("operationId", "")

            if operation_id in PAYMENT_SUMMARIES:
                summary, description = PAYMENT_SUMMARIES[operation_id]
                operation.setdefault("summary", summary)
                operation["description"] = description

            if operation_id in LOOKUP_OPERATIONS:
                operation["tags"] = ["Payments - Lookup"]

    result["tags"] = [
        {
            "name": "Payments",
            "description": (
                "Payment lifecycle: authorization with merchant splits, capture, "
                "refunds and cancellation. Amounts are integers in minor units."
            ),
        },
        {
            "name": "Payments - Lookup",
            "description": "Read-only payment retrieval.",
        },
    ]

    return result
