"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so that an AI agent
can recover without human intervention.
"""

import mcp.types as types

from ...core.client import BookStackAPIError


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied,
            validation_error, sync_in_progress, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Book 12 not found", "Use bookstack_list_books to find book ids.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_api_error(error: BookStackAPIError) -> types.CallToolResult:
    """Translate a BookStack API error into a structured error response."""
    match error.status_code:
        case None:
            return build_error_response(
                "connection_error",
                error.message,
                "Check BOOKSTACK_URL and network connectivity, then retry.",
            )
        case 401:
            return build_error_response(
                "permission_denied",
                error.message,
                "Check BOOKSTACK_TOKEN_ID and BOOKSTACK_TOKEN_SECRET.",
            )
        case 403:
            return build_error_response(
                "permission_denied",
                error.message,
                "The API token's role lacks permission for this content. "
                "Ask a BookStack administrator to grant access.",
            )
        case 404:
            return build_error_response(
                "not_found",
                error.message,
                "Use bookstack_list_books to verify the configured book ids.",
            )
        case 422:
            return build_error_response(
                "validation_error",
                error.message,
                "Check parameter values and retry.",
            )
        case 429:
            return build_error_response(
                "rate_limited",
                error.message,
                "Wait a minute before retrying.",
            )
        case _:
            return build_error_response(
                "server_error",
                error.message,
                "Contact the BookStack administrator or retry later.",
            )
