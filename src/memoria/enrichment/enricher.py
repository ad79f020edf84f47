"""
Enrichment Engine

Consolidates new information into an existing record:

    analyze -> auto-resolve (unless forced) -> LLM consolidation (if needed)
            -> persist (unless dry run)

Every write is recorded as a Change; the ordered list is the audit trail.
"""

import copy
import logging
from typing import Any, List, Optional

from memoria.config import EnrichmentConfig
from memoria.enrichment.consolidator import LLMConsolidator
from memoria.enrichment.diff import analyze
from memoria.enrichment.resolver import auto_resolve
from memoria.errors import LLMCallError, LLMUnavailableError, NotFoundError, describe_error
from memoria.llm.base import LLMCaller
from memoria.llm.cancellation import CancellationToken, run_guarded
from memoria.models.enrichment import (
    Change,
    ChangeAction,
    ChangeSource,
    EnrichmentOptions,
    EnrichmentResult,
)
from memoria.storage.base import RecordStore, Scope

logger = logging.getLogger("memoria.enrichment")


class EnrichmentEngine:
    """Merges additional sources into stored records."""

    def __init__(
        self,
        store: RecordStore,
        llm: Optional[LLMCaller] = None,
        config: Optional[EnrichmentConfig] = None,
        temperature: float = 0.2,
    ):
        self.store = store
        self.config = config or EnrichmentConfig()
        self.consolidator = LLMConsolidator(llm, temperature) if llm else None

    def default_options(self, **overrides: Any) -> EnrichmentOptions:
        values = {"dry_run": self.config.default_dry_run}
        values.update(overrides)
        return EnrichmentOptions(**values)

    async def enrich(
        self,
        key: str,
        additional_data: List[Any],
        options: Optional[EnrichmentOptions] = None,
        token: Optional[CancellationToken] = None,
    ) -> EnrichmentResult:
        """
        Enrich the record stored under ``key``.

        Raises:
            LLMUnavailableError: LLM enrichment forced but no LLM configured
            NotFoundError: no record under ``key``
        """
        options = options or self.default_options()

        if options.force_llm_enrichment and self.consolidator is None:
            raise LLMUnavailableError("LLM enrichment was forced but no LLM caller is configured")

        scope = Scope(tenant_id=options.tenant_id)
        record = await self.store.get(key, scope)
        if record is None:
            raise NotFoundError(key)

        existing = record.value
        analysis = analyze(existing, additional_data)
        logger.info(
            f"Enriching {key}: {len(analysis.conflicts)} conflicts, "
            f"{len(analysis.additions)} additions, complex={analysis.has_complex_conflicts}"
        )

        if options.force_llm_enrichment:
            data, changes = copy.deepcopy(existing), []
        else:
            data, changes = auto_resolve(existing, analysis)

        used_llm = False
        explanation = None

        if analysis.has_complex_conflicts or options.force_llm_enrichment:
            if self.consolidator is None:
                complex_fields = [c.field for c in analysis.conflicts if not c.is_simple]
                complex_fields += [a.field for a in analysis.additions if not a.is_simple]
                explanation = (
                    f"Complex conflicts left unresolved in {', '.join(complex_fields)}: "
                    "no LLM configured, kept existing values"
                )
            else:
                used_llm = True
                try:
                    merged = await run_guarded(
                        self.consolidator.consolidate(
                            data,
                            additional_data,
                            analysis,
                            custom_prompt=options.custom_prompt,
                            focus_fields=options.focus_fields,
                            json_schema=options.json_schema,
                            goal=options.goal,
                        ),
                        timeout=self.config.llm_timeout_seconds,
                        token=token,
                    )
                except Exception as e:
                    logger.warning(
                        f"LLM enrichment failed for {key}: {e!r}",
                        exc_info=not isinstance(e, LLMCallError),
                    )
                    explanation = f"LLM enrichment failed: {describe_error(e)}"
                else:
                    changes.append(Change(
                        field="data",
                        action=ChangeAction.LLM_ENRICHED,
                        old_value=data,
                        new_value=merged,
                        source=ChangeSource.LLM,
                    ))
                    data = merged
                    explanation = "LLM enrichment completed"

        saved = False
        if not options.dry_run:
            await self.store.set(key, data, tags=record.tags, scope=scope)
            saved = True

        return EnrichmentResult(
            enriched_data=data,
            changes=changes,
            used_llm=used_llm,
            explanation=explanation,
            saved=saved,
            analysis=analysis,
        )
