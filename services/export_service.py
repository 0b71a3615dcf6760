"""
Export service: downloadable summary of an executed reconciliation.

One line per canonical update, with the per-product result of the
batch. Offered as CSV, JSON or an Excel workbook.
"""

import csv
import json
from dataclasses import dataclass
from io import BytesIO, StringIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
import structlog

from exceptions import ValidationError
from models.stock_upload import CanonicalUpdate, ExecutionResult

logger = structlog.get_logger(__name__)

SUMMARY_COLUMNS = [
    "product_id",
    "product_name",
    "old_stock",
    "new_stock",
    "difference",
    "manual_match",
    "status",
    "error",
]

EXPORT_FORMATS = {
    "csv": "text/csv",
    "json": "application/json",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass
class ExportFile:
    """Rendered download."""
    content: bytes
    media_type: str
    filename: str


class ExportService:
    """Renders reconciliation summaries."""

    def build_rows(
        self,
        updates: list[CanonicalUpdate],
        result: ExecutionResult,
    ) -> list[dict]:
        """Join canonical updates with their execution outcome."""
        errors = {e.product_id: e.error for e in result.errors}
        applied = "validated" if result.dry_run else "applied"
        return [
            {
                "product_id": u.product_id,
                "product_name": u.product_name,
                "old_stock": u.old_stock,
                "new_stock": u.new_stock,
                "difference": u.difference,
                "manual_match": u.is_manual_match,
                "status": "failed" if u.product_id in errors else applied,
                "error": errors.get(u.product_id),
            }
            for u in updates
        ]

    def export_summary(
        self,
        updates: list[CanonicalUpdate],
        result: ExecutionResult,
        fmt: str = "csv",
        name: Optional[str] = None,
    ) -> ExportFile:
        """
        Render the summary in the requested format.

        Raises:
            ValidationError: On an unknown format
        """
        fmt = (fmt or "csv").lower()
        if fmt not in EXPORT_FORMATS:
            raise ValidationError(
                message=f"Unsupported export format: {fmt}",
                code="INVALID_EXPORT_FORMAT",
                details={"provided": fmt, "valid": list(EXPORT_FORMATS)}
            )

        rows = self.build_rows(updates, result)
        base = name or f"stock-reconciliation-{result.batch_id or 'summary'}"

        logger.info("exporting_reconciliation_summary", format=fmt, rows=len(rows))

        if fmt == "csv":
            content = self._to_csv(rows)
        elif fmt == "json":
            content = self._to_json(rows, result)
        else:
            content = self._to_xlsx(rows, result)

        return ExportFile(
            content=content,
            media_type=EXPORT_FORMATS[fmt],
            filename=f"{base}.{fmt}",
        )

    def _to_csv(self, rows: list[dict]) -> bytes:
        output = StringIO()
        writer = csv.DictWriter(output, fieldnames=SUMMARY_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})
        return output.getvalue().encode("utf-8")

    def _to_json(self, rows: list[dict], result: ExecutionResult) -> bytes:
        payload = {
            "batch_id": result.batch_id,
            "dry_run": result.dry_run,
            "success_count": result.success_count,
            "error_count": result.error_count,
            "total_processed": result.total_processed,
            "updates": rows,
        }
        return json.dumps(payload, indent=2).encode("utf-8")

    def _to_xlsx(self, rows: list[dict], result: ExecutionResult) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = "Summary"

        # Styles
        header_font = Font(bold=True)
        failed_fill = PatternFill(start_color="FFE0E0", end_color="FFE0E0", fill_type="solid")

        ws.append(["Batch", result.batch_id or ""])
        ws.append(["Updated", result.success_count])
        ws.append(["Failed", result.error_count])
        ws.append(["Total", result.total_processed])
        ws.append([])

        ws.append(SUMMARY_COLUMNS)
        for cell in ws[ws.max_row]:
            cell.font = header_font

        for row in rows:
            ws.append([row[c] for c in SUMMARY_COLUMNS])
            if row["status"] == "failed":
                for cell in ws[ws.max_row]:
                    cell.fill = failed_fill

        ws.column_dimensions["B"].width = 40
        ws.column_dimensions["H"].width = 40

        output = BytesIO()
        wb.save(output)
        return output.getvalue()


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
