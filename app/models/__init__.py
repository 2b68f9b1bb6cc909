"""Request parsing for the Social Publish API."""

from .requests import new_post_request_from_form, parse_new_post_request

__all__ = [
    "new_post_request_from_form",
    "parse_new_post_request",
]
