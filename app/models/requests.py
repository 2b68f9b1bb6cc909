"""
Parsing of create-post requests.

Every create-post endpoint accepts either a JSON body or a form submission
(urlencoded or multipart). Forms may list targets as `targets`/`targets[]`
or flag them individually (`mastodon=1`).
"""

import logging
from typing import List, Optional

from fastapi import Request
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import FormData

from socialpublish.exceptions import ValidationError
from socialpublish.types import NewPostRequest, Target

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
TRUTHY_VALUES = frozenset({"1", "true", "on", "yes"})


def _form_strings(form: FormData, *keys: str) -> List[str]:
    values: List[str] = []
    for key in keys:
        values.extend(v for v in form.getlist(key) if isinstance(v, str) and v)
    return values


def _form_string(form: FormData, key: str) -> Optional[str]:
    value = form.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def new_post_request_from_form(form: FormData) -> NewPostRequest:
    """Build a request from submitted form fields."""
    targets = _form_strings(form, "targets[]", "targets")
    for target in Target:
        if _form_string(form, target.value) == "1":
            targets.append(target.value)

    cleanup = _form_string(form, "cleanupHtml")
    images = _form_strings(form, "images[]", "images")

    return NewPostRequest(
        content=_form_string(form, "content") or "",
        targets=targets or None,
        link=_form_string(form, "link"),
        language=_form_string(form, "language"),
        cleanup_html=cleanup is not None and cleanup.lower() in TRUTHY_VALUES,
        images=images or None,
    )


async def parse_new_post_request(request: Request) -> NewPostRequest:
    """
    FastAPI dependency reading a NewPostRequest from JSON or form data.

    Raises:
        ValidationError: If the body cannot be parsed.
    """
    content_type = request.headers.get("content-type", "").lower()
    if content_type.startswith(FORM_CONTENT_TYPES):
        return new_post_request_from_form(await request.form())

    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Invalid request body", status=400)

    try:
        return NewPostRequest.model_validate(body)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "request"
        logger.warning(f"Invalid create-post request: {field}: {first.get('msg')}")
        raise ValidationError(f"Invalid request, {field}: {first.get('msg')}", status=400)
