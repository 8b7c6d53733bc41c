"""
Naming checks for repository paths.

Each check returns ``(is_valid, error_message)`` so callers can collect
every problem of a snapshot before deciding to abort.
"""


def format_validation_error(field_name: str, reason: str) -> str:
    """Join a subject and a rule into one problem line (``"Module id cannot be empty"``)."""
    return f"{field_name} {reason}"


def validate_attachment_path(path: str) -> tuple[bool, str]:
    """
    Validate the path of an attachment image.

    Validation rules:
        - Cannot contain whitespace
        - Cannot contain '..'
    """
    if any(ch.isspace() for ch in path):
        return (
            False,
            format_validation_error(
                "Attachment path", "cannot contain whitespace"
            ),
        )

    if ".." in path:
        return (
            False,
            format_validation_error("Attachment path", "cannot contain '..'"),
        )

    return (True, "")


def validate_identifier_segment(kind: str, segment: str) -> tuple[bool, str]:
    """
    Validate a course or module folder name used as a database key.

    Validation rules:
        - Cannot be empty
        - Cannot contain whitespace
    """
    if not segment:
        return (False, format_validation_error(f"{kind} id", "cannot be empty"))

    if any(ch.isspace() for ch in segment):
        return (
            False,
            format_validation_error(f"{kind} id", "cannot contain whitespace"),
        )

    return (True, "")
