import csv
import io
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from gateway import PersistenceGateway
from schemas import Form, ResponseRecord

TIMESTAMP_FORMAT = "%m/%d/%Y, %I:%M:%S %p"


def format_timestamp(value: str) -> str:
    """ISO-8601 timestamp -> local date and time as shown to people."""
    try:
        return datetime.fromisoformat(value).astimezone().strftime(TIMESTAMP_FORMAT)
    except ValueError:
        return value


def format_cell(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(map(str, value))
    if value is None:
        return ""
    return str(value)


def iter_csv(form: Form, records: List[ResponseRecord]) -> Iterator[str]:
    """Yield the export one line at a time: Timestamp then one column per field, answers quoted."""
    output = io.StringIO()
    csv.writer(output, lineterminator="\n").writerow(["Timestamp"] + [f.label for f in form.fields])
    writer = csv.writer(output, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    yield output.getvalue(); output.seek(0); output.truncate(0)
    for r in records:
        row = [format_timestamp(r.timestamp)]
        row.extend(format_cell(r.responses.get(f.id)) for f in form.fields)
        writer.writerow(row)
        yield output.getvalue(); output.seek(0); output.truncate(0)


def export_csv(form: Form, records: List[ResponseRecord]) -> str:
    return "".join(iter_csv(form, records))


def csv_filename(form: Form) -> str:
    return f"{form.title}-responses.csv"


class ResponseViewer:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def all_forms(self) -> Dict[str, Form]:
        # published copies win over drafts with the same id
        return {**self.gateway.list_drafts(), **self.gateway.list_published()}

    def overview(self) -> List[Dict[str, Any]]:
        counts = self.gateway.response_counts()
        return [
            {
                "id": form_id,
                "title": form.title,
                "fields": len(form.fields),
                "responses": counts.get(form_id, 0),
            }
            for form_id, form in self.all_forms().items()
        ]

    def get_form(self, form_id: str) -> Optional[Form]:
        return self.gateway.get_published(form_id) or self.gateway.get_draft(form_id)

    def responses(self, form_id: str) -> List[ResponseRecord]:
        return self.gateway.list_responses(form_id)
