import argparse, sys, datetime
from fhir_conformance.config import (
    DEFAULT_OUT_DIR,
    ENV_BASE_URL,
    ENV_DB_URL,
    ENV_PATIENT_ID,
    ENV_TOKEN,
    build_db_url,
    get_env,
    get_http_timeout,
)
from fhir_conformance.capability import fetch_capabilities
from fhir_conformance.client import FHIRClient
from fhir_conformance.db import create_schema, make_engine, save_sequence_result
from fhir_conformance.exceptions import ConformanceError
from fhir_conformance.logging_config import setup_logging
from fhir_conformance.runner.aggregate import write_outputs
from fhir_conformance.runner.execute import run_sequence
from fhir_conformance.sequences.argonaut import PATIENT_ID_KEY
from fhir_conformance.sequences.registry import get_sequence, list_sequences
import fhir_conformance.sequences  # noqa: F401

_STATUS_LABELS = {
    "pass": "PASS",
    "fail": "FAIL",
    "skip": "SKIP",
    "error": "ERROR",
}


def _status_line(spec, outcome) -> str:
    label = _STATUS_LABELS[outcome.kind.value]
    if outcome.is_warning:
        label = "WARN"
    line = f"  [{label:5}] {spec.title}"
    if outcome.message:
        line += f"\n          {outcome.message}"
    return line


def _print_summary(result) -> None:
    if result.aborted:
        print(f"\nSequence '{result.sequence_name}' aborted: {result.abort_reason}")
        return
    print(
        f"\n{result.sequence_name}: {result.result.upper()} "
        f"({result.passed_count} passed, {result.failed_count} failed, "
        f"{result.warning_count} warnings, {result.skipped_count} skipped, "
        f"{result.error_count} errors of {result.total})"
    )


def _run(args) -> int:
    base_url = args.base_url or get_env(ENV_BASE_URL)
    if not base_url:
        raise SystemExit(f"Missing server URL (use --base-url or set {ENV_BASE_URL})")
    token = args.token or get_env(ENV_TOKEN)
    patient_id = args.patient_id or get_env(ENV_PATIENT_ID)
    sequence = get_sequence(args.sequence)
    run_id = args.run_id or f"run-{datetime.datetime.now().strftime('%Y%m%dT%H%M%S')}"

    seed = {PATIENT_ID_KEY: patient_id} if patient_id else {}
    print(f"Running {sequence.title} against {base_url}")
    with FHIRClient(base_url, token=token, timeout=get_http_timeout()) as client:
        capabilities = fetch_capabilities(client)
        result = run_sequence(
            sequence,
            client,
            capabilities,
            seed=seed,
            on_outcome=lambda spec, outcome: print(_status_line(spec, outcome)),
        )
    _print_summary(result)

    path = write_outputs(result, args.out, run_id)
    print(f"Written results -> {path}")

    db_url = args.db_url or get_env(ENV_DB_URL) or build_db_url()
    if db_url:
        engine = make_engine(db_url, echo=args.echo_sql)
        try:
            create_schema(engine)
            save_sequence_result(engine, result, testing_instance_id=args.instance_id)
        finally:
            engine.dispose()
        print(f"Stored result {result.id} (wait_index={result.wait_index})")
    return 0 if result.conformant else 1


def _list_tests(args) -> int:
    sequence = get_sequence(args.sequence)
    print(f"{sequence.title}: {len(sequence)} test cases")
    for entry in sequence.registry.list_registered():
        flag = " (optional)" if entry["optional"] else ""
        print(f"  {entry['ordinal']:3d}. {entry['key']}{flag}\n       {entry['title']}")
    return 0


def _list_sequences(args) -> int:
    for entry in list_sequences():
        print(f"- {entry['name']}\t{entry['title']} ({entry['test_count']} test cases)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fhir-conformance", description="FHIR server conformance test runner")
    p.add_argument("--log-level", type=str, default=None, help="Log level (or set FHIR_CONFORMANCE_LOG_LEVEL)")
    subs = p.add_subparsers(dest="cmd", required=True)

    p1 = subs.add_parser("run", help="Run a sequence against a FHIR server")
    p1.add_argument("--base-url", type=str, help=f"FHIR base URL (or set {ENV_BASE_URL})")
    p1.add_argument("--token", type=str, help=f"Bearer token (or set {ENV_TOKEN})")
    p1.add_argument("--patient-id", type=str, help=f"Target patient id (or set {ENV_PATIENT_ID})")
    p1.add_argument("--sequence", type=str, default="argonaut_data_query")
    p1.add_argument("--run-id", type=str)
    p1.add_argument("--instance-id", type=str, help="Testing instance id stored with the result")
    p1.add_argument("--out", type=str, default=DEFAULT_OUT_DIR)
    p1.add_argument("--db-url", type=str, help=f"Database URL (or set {ENV_DB_URL} or configure .env)")
    p1.add_argument("--echo-sql", action="store_true", help="Echo SQLAlchemy SQL for debugging")
    p1.set_defaults(func=_run)

    p2 = subs.add_parser("list-tests", help="List the test cases of a sequence")
    p2.add_argument("--sequence", type=str, default="argonaut_data_query")
    p2.set_defaults(func=_list_tests)

    p3 = subs.add_parser("list-sequences", help="List registered sequences")
    p3.set_defaults(func=_list_sequences)
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level)
    try:
        return args.func(args)
    except ConformanceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

if __name__ == "__main__":
    sys.exit(main())
