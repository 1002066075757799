"""
CSV Exporter

Writes a QueryResult as CSV. Values are rendered from their Cell kind, so
output does not depend on which driver produced the row.
"""

import csv
import logging
from typing import Optional, TextIO

from dbadmin.core.config import get_settings
from dbadmin.models import CSVOptions, QueryResult

logger = logging.getLogger(__name__)

UTF8_BOM = "\ufeff"


def wants_bom(encoding: str) -> bool:
    """UTF-8 output starts with a BOM so spreadsheet tools detect the encoding."""
    return encoding.upper().replace("_", "-") in ("UTF-8", "UTF8")


class CSVExporter:
    """
    Usage:
        CSVExporter(CSVOptions(separator=";")).write(stream, result)
    """

    def __init__(self, options: Optional[CSVOptions] = None):
        if options is None:
            options = CSVOptions(null_value=get_settings().csv_null_value)
        self.options = options

    def write(self, writer: TextIO, result: QueryResult) -> int:
        """Write ``result`` to ``writer`` and return the number of data rows written."""
        opts = self.options
        if wants_bom(opts.encoding):
            writer.write(UTF8_BOM)

        out = csv.writer(
            writer,
            delimiter=opts.separator or ",",
            quotechar=opts.quote or '"',
            lineterminator="\n",
        )
        if opts.include_header:
            out.writerow(result.columns)

        rows = result.rows
        if opts.max_rows > 0:
            rows = rows[:opts.max_rows]

        for row in rows:
            out.writerow([self.format_cell(row.get(name)) for name in result.columns])

        logger.debug(f"CSV export wrote {len(rows)} row(s), {len(result.columns)} column(s)")
        return len(rows)

    def format_cell(self, cell) -> str:
        if cell is None:
            return self.options.null_value
        return cell.display(null_value=self.options.null_value, date_format=self.options.date_format)
