"""
Broadcast of one post to several platforms.

Provides:
- Target resolution (case-insensitive, unknown names ignored)
- Concurrent publishing through the platform adapters
- Merging of per-target results into one response or a composite error
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from ..exceptions import (
    CaughtException,
    CompositeError,
    CompositeErrorResponse,
    SocialPublishError,
)
from ..types.posts import NewPostRequest, PostResponse, Target
from .platforms.base import BasePlatform

logger = logging.getLogger(__name__)

Outcome = Union[PostResponse, SocialPublishError]


class PublisherService:
    """
    Publishes posts through the registered platform adapters.

    Args:
        platforms: Adapter for each supported target.
    """

    def __init__(self, platforms: Dict[Target, BasePlatform]) -> None:
        self._platforms = dict(platforms)
        logger.info(
            "Publisher initialized",
            extra={
                "configured": [
                    target.value
                    for target, platform in self._platforms.items()
                    if platform.is_configured
                ]
            },
        )

    @property
    def platforms(self) -> List[Target]:
        """Targets with a registered adapter."""
        return list(self._platforms)

    def get_platform(self, target: Union[Target, str]) -> BasePlatform:
        """
        Get the adapter for a target.

        Raises:
            KeyError: If the target is unknown.
        """
        resolved = target if isinstance(target, Target) else Target.parse(target)
        if resolved is None or resolved not in self._platforms:
            raise KeyError(f"Unknown target: {target}")
        return self._platforms[resolved]

    @staticmethod
    def resolve_targets(targets: Optional[List[str]]) -> List[Target]:
        """Lowercase, de-duplicate and drop unknown target names."""
        resolved: List[Target] = []
        for name in targets or []:
            target = Target.parse(name)
            if target is None:
                logger.warning(f"Ignoring unknown target: {name}")
                continue
            if target not in resolved:
                resolved.append(target)
        return resolved

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def broadcast_post(self, request: NewPostRequest) -> Dict[str, Dict[str, Any]]:
        """
        Publish a post to every requested target concurrently.

        Args:
            request: The post, with its `targets`.

        Returns:
            Each successful platform response, keyed by module name.

        Raises:
            ValidationError: If the content is invalid.
            CompositeError: If any target failed; carries the outcome of every
                target and the highest failing status.
        """
        request.validate_content()
        targets = self.resolve_targets(request.targets)

        outcomes: List[Outcome] = await asyncio.gather(
            *(self._publish(target, request) for target in targets)
        )
        results: List[Tuple[Target, Outcome]] = list(zip(targets, outcomes))

        failures = [
            (target, outcome)
            for target, outcome in results
            if isinstance(outcome, SocialPublishError)
        ]
        if failures:
            modules = ", ".join(target.value for target, _ in failures)
            error = CompositeError(
                message=f"Failed to create post via {modules}.",
                status=max(outcome.status for _, outcome in failures),
                responses=[self._composite_response(target, outcome) for target, outcome in results],
            )
            logger.warning(
                error.message,
                extra={"status": error.status, "targets": [t.value for t in targets]},
            )
            raise error

        logger.info(f"Broadcast to {', '.join(t.value for t in targets) or 'no targets'} succeeded")
        return {outcome.module: outcome.to_dict() for _, outcome in results}

    async def _publish(self, target: Target, request: NewPostRequest) -> Outcome:
        platform = self._platforms.get(target)
        if platform is None:
            return CaughtException(f"No adapter registered for {target.value}", module=target.value)
        try:
            return await platform.create_post(request)
        except SocialPublishError as e:
            return e
        except Exception as e:
            logger.error(f"Unexpected failure publishing to {target.value}", exc_info=True)
            return CaughtException(
                f"Failed to create post via {target.value}: {e}",
                module=target.value,
                cause=e,
            )

    @staticmethod
    def _composite_response(target: Target, outcome: Outcome) -> CompositeErrorResponse:
        if isinstance(outcome, SocialPublishError):
            return CompositeErrorResponse(
                type="error",
                module=target.value,
                status=outcome.status,
                error=outcome.message,
            )
        return CompositeErrorResponse(
            type="success",
            module=outcome.module,
            result=outcome.to_dict(),
        )
