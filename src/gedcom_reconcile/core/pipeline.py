from __future__ import annotations

from pathlib import Path
from typing import Optional

from gedcom_reconcile.compare.models import CompareOptions, CompareResult
from gedcom_reconcile.compare.orchestrator import Reconciler
from gedcom_reconcile.core.context import ReconcileContext
from gedcom_reconcile.core.exceptions import ConfigurationError, PipelineExecutionError
from gedcom_reconcile.exporter import export_compare_result
from gedcom_reconcile.loader import load_mapping, load_tree
from gedcom_reconcile.normalization.name_variants import build_default_oracle
from gedcom_reconcile.photos.compare import PhotoCompareCache, PhotoComparisonService


class Pipeline:
    """
    Orchestrates load -> reconcile -> export.
    No business logic lives here.
    """

    def __init__(self, context: ReconcileContext, photo_service: Optional[PhotoComparisonService] = None):
        self.ctx = context
        self.log = context.logger
        self.photo_service = photo_service

    def _photo_cache(self) -> Optional[PhotoCompareCache]:
        # The cache only holds service reports.
        path = self.ctx.config.paths.get("photo_cache")
        if self.photo_service is None or not path:
            return None
        return PhotoCompareCache.load(path)

    def run(self) -> CompareResult:
        self.log.info("Pipeline starting")
        cfg = self.ctx.config

        if not self.ctx.anchor_source_id or not self.ctx.anchor_destination_id:
            raise ConfigurationError("Both anchor ids are required")

        try:
            source = load_tree(self.ctx.source_path)
            destination = load_tree(self.ctx.destination_path)
            seed = load_mapping(self.ctx.seed_mapping_path) if self.ctx.seed_mapping_path else None

            oracle = build_default_oracle(cfg.names.get("given_names_csv"), cfg.names.get("surnames_csv"))
            photo_cache = self._photo_cache()
            reconciler = Reconciler.from_config(cfg, oracle, self.photo_service, photo_cache)

            options = CompareOptions.from_config(
                cfg,
                self.ctx.anchor_source_id,
                self.ctx.anchor_destination_id,
                **self.ctx.option_overrides,
            )
            result = reconciler.run(source, destination, options, seed_mapping=seed)

            if photo_cache is not None:
                photo_cache.save()
                self.ctx.stats["photo_cache_hits"] = photo_cache.hits
                self.ctx.stats["photo_cache_misses"] = photo_cache.misses

            if self.ctx.output_path:
                export_compare_result(result, Path(self.ctx.output_path))

            self.ctx.stats["iterations"] = len(result.iterations)
            self.ctx.stats["converged"] = result.converged
            self.ctx.stats["mapped_persons"] = len(result.mapping)

            self.log.info("Pipeline completed successfully")
            return result

        except ConfigurationError:
            raise
        except Exception as exc:
            self.ctx.errors.append(str(exc))
            self.log.exception("Pipeline execution failed")
            raise PipelineExecutionError(str(exc)) from exc
