"""
Pipeline Hook System

Before/after hooks around every lifecycle stage and around a whole
pipeline run, for observability and custom logic injection.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("memoria.hooks")

PIPELINE = "pipeline"
WILDCARD = "*"


class PipelineHookManager:
    """
    Manages hooks (callbacks) for pipeline stages.

    Stage names are the lifecycle stage values ("acquisition", ...);
    ``"pipeline"`` targets the whole run and ``"*"`` every stage.
    Stage-specific hooks receive ``context``; wildcard hooks receive
    ``(stage, context)``. A failing hook is logged and never aborts
    the pipeline.

    Example:
        >>> hooks = PipelineHookManager()
        >>>
        >>> @hooks.before("acquisition")
        >>> async def log_items(context):
        >>>     print(f"Acquiring {len(context['items'])} items")
        >>>
        >>> await hooks.execute_before("acquisition", {"items": [...]})
    """

    def __init__(self):
        self.before_hooks: Dict[str, List[Callable]] = {}
        self.after_hooks: Dict[str, List[Callable]] = {}

    def register_before(self, stage: str, hook: Callable) -> None:
        """
        Register a hook to run before a pipeline stage.

        Args:
            stage: Stage name, "pipeline", or "*" for all stages
            hook: Async callable
        """
        self.before_hooks.setdefault(stage, []).append(hook)
        logger.debug(f"Registered before hook for stage: {stage}")

    def register_after(self, stage: str, hook: Callable) -> None:
        """Register a hook to run after a pipeline stage."""
        self.after_hooks.setdefault(stage, []).append(hook)
        logger.debug(f"Registered after hook for stage: {stage}")

    def before(self, stage: str):
        """Decorator for registering before hooks."""
        def decorator(func: Callable) -> Callable:
            self.register_before(stage, func)
            return func
        return decorator

    def after(self, stage: str):
        """
        Decorator for registering after hooks.

        Example:
            >>> @hooks.after("pipeline")
            >>> async def report(context):
            >>>     print(f"{len(context['items'])} items survived")
        """
        def decorator(func: Callable) -> Callable:
            self.register_after(stage, func)
            return func
        return decorator

    async def _run(self, kind: str, stage: str, hook: Callable, *args: Any) -> None:
        try:
            await hook(*args)
        except Exception as e:
            logger.error(f"{kind} hook failed for stage '{stage}': {e}", exc_info=True)

    async def execute_before(self, stage: str, context: Dict[str, Any]) -> None:
        """
        Execute all before hooks for a stage.

        Wildcard hooks run first; they do not fire for "pipeline".
        """
        if stage != PIPELINE:
            for hook in self.before_hooks.get(WILDCARD, []):
                await self._run("Before", stage, hook, stage, context)

        for hook in self.before_hooks.get(stage, []):
            await self._run("Before", stage, hook, context)

    async def execute_after(self, stage: str, context: Dict[str, Any]) -> None:
        """
        Execute all after hooks for a stage.

        Stage-specific hooks run before wildcards.
        """
        for hook in self.after_hooks.get(stage, []):
            await self._run("After", stage, hook, context)

        if stage != PIPELINE:
            for hook in self.after_hooks.get(WILDCARD, []):
                await self._run("After", stage, hook, stage, context)

    def clear_hooks(self, stage: Optional[str] = None) -> None:
        """Clear hooks for a specific stage, or all hooks."""
        if stage:
            self.before_hooks.pop(stage, None)
            self.after_hooks.pop(stage, None)
        else:
            self.before_hooks.clear()
            self.after_hooks.clear()

    def get_hook_count(self, stage: Optional[str] = None) -> Dict[str, int]:
        """Get count of registered hooks."""
        if stage:
            return {
                "before": len(self.before_hooks.get(stage, [])),
                "after": len(self.after_hooks.get(stage, [])),
            }
        total_before = sum(len(hooks) for hooks in self.before_hooks.values())
        total_after = sum(len(hooks) for hooks in self.after_hooks.values())
        return {
            "before": total_before,
            "after": total_after,
            "total": total_before + total_after,
        }
