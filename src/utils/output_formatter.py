import csv
import io
import json
from typing import Any, Dict, List, Sequence, TextIO


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "YES" if value else "NO"
    if isinstance(value, (list, tuple)):
        return ";".join(_cell(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return str(value).replace("\t", " ").replace("\n", " ")


class OutputFormatter:
    """Renders flat dict records; column order comes from the caller."""

    def __init__(self):
        self.supported_formats = ["tsv", "json", "jsonl", "csv"]

    def format_record(self, record: Dict[str, Any], columns: Sequence[str], format_type: str = "tsv") -> str:
        format_type = format_type.lower()
        if format_type == "tsv":
            return "\t".join(_cell(record.get(c)) for c in columns)
        if format_type == "json":
            return json.dumps(record, indent=2, ensure_ascii=False)
        if format_type == "jsonl":
            return json.dumps(record, ensure_ascii=False)
        if format_type == "csv":
            output = io.StringIO()
            writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL)
            writer.writerow([_cell(record.get(c)) for c in columns])
            return output.getvalue().strip()
        raise ValueError(f"Unsupported format: {format_type}")

    def get_header(self, columns: Sequence[str], format_type: str = "tsv") -> str:
        format_type = format_type.lower()
        if format_type == "tsv":
            return "\t".join(columns)
        if format_type == "csv":
            return ",".join(columns)
        return ""

    def write_records(
        self,
        records: List[Dict[str, Any]],
        columns: Sequence[str],
        output_file: TextIO,
        format_type: str = "tsv",
        include_header: bool = True,
    ) -> None:
        ft = format_type.lower()
        if ft == "json":
            json.dump(records, output_file, indent=2, ensure_ascii=False)
            output_file.write("\n")
            return

        if include_header and ft in ("tsv", "csv"):
            output_file.write(self.get_header(columns, ft) + "\n")

        for r in records:
            output_file.write(self.format_record(r, columns, ft) + "\n")


output_formatter = OutputFormatter()
