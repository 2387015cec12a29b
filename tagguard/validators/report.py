"""Report validation against the bundled JSON Schema."""

import json
from pathlib import Path

import jsonschema

SCHEMA_PATH = Path(__file__).parent.parent / "contracts" / "report_schema.json"


def _load_schema() -> dict:
    """Load the report JSON schema."""
    with open(SCHEMA_PATH) as f:
        return json.load(f)


def validate_report(report: dict) -> tuple[bool, list[str]]:
    """
    Validate a JSON report against the schema and its counting rules.

    Args:
        report: The decoded JSON report.

    Returns:
        A tuple of (is_valid, list_of_errors).
        If valid, errors list is empty.
    """
    errors: list[str] = []

    try:
        schema = _load_schema()
        jsonschema.validate(instance=report, schema=schema)
    except jsonschema.ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        return (False, errors)
    except FileNotFoundError:
        errors.append(f"Schema file not found: {SCHEMA_PATH}")
        return (False, errors)

    results = report["results"]
    summary = report["summary"]

    if summary["total_tags"] != len(results):
        errors.append(
            f"total_tags is {summary['total_tags']} but there are {len(results)} results"
        )

    for decision, key in (("PUSH", "push_count"), ("SKIP", "skip_count"), ("ERROR", "error_count")):
        actual = sum(1 for r in results if r["decision"] == decision)
        if summary[key] != actual:
            errors.append(f"{key} is {summary[key]} but {actual} results are {decision}")

    for r in results:
        if not r["is_immutable_pattern"] and r["decision"] != "PUSH":
            errors.append(f"Mutable tag '{r['tag']}' must be PUSH, got {r['decision']}")

    return (len(errors) == 0, errors)
