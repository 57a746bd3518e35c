"""
Input validation functions for bookstack_sync.

Provides validation for entity names and page content so that obviously
invalid requests are rejected before any HTTP call is made.
"""

# BookStack limits entity names to 255 characters.
MAX_NAME_LENGTH = 255


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Page name")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_page_name(name: str) -> tuple[bool, str]:
    """
    Validate a book, chapter or page name.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not name or not name.strip():
        return (
            False,
            format_validation_error("Name", "cannot be empty"),
        )

    if len(name) > MAX_NAME_LENGTH:
        return (
            False,
            format_validation_error(
                "Name", f"exceeds {MAX_NAME_LENGTH} characters"
            ),
        )

    return (True, "")


def validate_content(
    content: str, max_size: int = 1_000_000
) -> tuple[bool, str]:
    """
    Validate page content.

    Args:
        content: The content to validate
        max_size: Maximum size in bytes (default: 1,000,000)

    Returns:
        Tuple of (is_valid, error_message).

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot exceed max_size bytes
    """
    if not content or not content.strip():
        return (
            False,
            format_validation_error("Content", "cannot be empty"),
        )

    content_bytes = len(content.encode("utf-8"))
    if content_bytes > max_size:
        return (
            False,
            format_validation_error(
                "Content", f"exceeds maximum size of {max_size} bytes"
            ),
        )

    return (True, "")
