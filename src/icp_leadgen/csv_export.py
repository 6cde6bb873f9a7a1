"""CSV export of leads (same columns as the JSON lead shape)."""

import csv
import io
from typing import Dict, Iterable, List

from .models import Lead
from .normalize import only_linkedin_url

CSV_HEADERS: List[str] = [
    "full_name",
    "title",
    "location",
    "linkedin_url",
    "company_name",
    "company_website",
    "company_industry",
    "company_employee_range",
    "source",
    "apollo_person_id",
    "confidence_score",
]


def _row(lead: Lead) -> List[str]:
    data = lead.model_dump()
    data["linkedin_url"] = only_linkedin_url(lead.linkedin_url)
    return [str(data.get(key, "")) for key in CSV_HEADERS]


def build_csv(leads: Iterable[Lead]) -> str:
    """Render leads as CSV text with a header row.

    Cells holding a comma, quote or newline are quoted with inner quotes
    doubled. Rows are separated by "\\n" with no trailing newline.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for lead in leads:
        writer.writerow(_row(lead))
    return buffer.getvalue().rstrip("\n")


def parse_csv(text: str) -> List[Dict[str, str]]:
    """Parse CSV produced by ``build_csv`` back into row dicts."""
    reader = csv.DictReader(io.StringIO(text))
    return [dict(row) for row in reader]


def get_csv_filename(job_id: str) -> str:
    return f"leadgen_{job_id}.csv"
