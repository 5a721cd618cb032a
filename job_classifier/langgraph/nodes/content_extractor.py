from ...models.content import ContentBundle
from ...utils.error_handling import create_error_response
from ...utils.text import normalize, split_labels
from ..state import ClassificationState


def build_content_bundle(
    title: str | None, description: str | None, job_labels: str | None
) -> ContentBundle:
    """Normalize raw job fields into a content bundle.

    Missing fields become empty strings; labels are split on commas,
    trimmed and lowercased, and empty segments are dropped.

    Args:
        title: Job title
        description: Free-text description
        job_labels: Comma-separated label string

    Returns:
        ContentBundle with lowercased fields and the combined text

    """
    title_lower = normalize(title)
    description_lower = normalize(description)
    labels = split_labels(job_labels)
    combined = f"{title_lower} {description_lower} {' '.join(labels)}"

    return ContentBundle(
        title=title_lower,
        description=description_lower,
        labels=labels,
        combined=combined,
    )


def extract_content(state: ClassificationState) -> dict:
    """Extract the normalized content bundle from the job fields.

    Args:
        state: Classification state containing the raw job fields

    Returns:
        Dict with content or error

    """
    # Content already supplied by the caller
    if state.get("content"):
        return {}

    try:
        content = build_content_bundle(
            state.get("title"), state.get("description"), state.get("job_labels")
        )
        return {"content": content}
    except (AttributeError, TypeError) as e:
        return create_error_response(f"Unable to read job fields: {e!s}")
