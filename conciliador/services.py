from __future__ import annotations

import logging
from dataclasses import dataclass

from conciliador.excel_export import export_report
from conciliador.excel_import import WorkbookSource, find_erp_sheet, find_marketplace_sheet, read_workbook
from conciliador.reconciliation import reconcile
from conciliador.reference_store import ReferenceStore
from conciliador.summary import ReconciliationSummary, summarize
from conciliador.tipos import ReconciledRow, ReconciliationConfig, TabularDataset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationRun:
    rows: list[ReconciledRow]
    summary: ReconciliationSummary

    def as_dict(self) -> dict:
        return {
            "ok": True,
            "rows": [r.to_record() for r in self.rows],
            "summary": self.summary.as_dict(),
        }


class ReconciliationService:
    """Une la lectura de planillas, la base logística y el motor de cálculo."""

    def __init__(self, store: ReferenceStore):
        self.store = store

    def load_marketplace(self, source: WorkbookSource) -> TabularDataset:
        sheet = find_marketplace_sheet(read_workbook(source))
        logger.info("Hoja de Mercado Libre: %s (%s filas)", sheet.name, len(sheet.rows))
        return sheet

    def load_erp(self, source: WorkbookSource) -> TabularDataset:
        sheet = find_erp_sheet(read_workbook(source))
        logger.info("Hoja de Odoo: %s (%s filas)", sheet.name, len(sheet.rows))
        return sheet

    def run(
        self,
        marketplace: TabularDataset | None,
        erp: TabularDataset | None,
        config: ReconciliationConfig,
    ) -> ReconciliationRun:
        # One snapshot per run; edits made meanwhile apply to the next run.
        weights = self.store.list_weights()
        rates = self.store.list_rates() if config.use_weight_table else []
        rows = reconcile(marketplace, erp, config, weights=weights, rates=rates)
        return ReconciliationRun(rows=rows, summary=summarize(rows))

    def run_files(
        self,
        marketplace_source: WorkbookSource,
        erp_source: WorkbookSource,
        config: ReconciliationConfig,
    ) -> ReconciliationRun:
        return self.run(self.load_marketplace(marketplace_source), self.load_erp(erp_source), config)

    @staticmethod
    def export(rows: list[ReconciledRow]) -> bytes:
        return export_report(rows)
