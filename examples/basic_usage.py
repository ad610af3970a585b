#!/usr/bin/env python3
"""Basic usage example for the FHIR conformance engine.

This example demonstrates how to:
1. Connect to a FHIR server
2. Read its capability statement
3. Run the Argonaut Data Query sequence
4. Write and optionally store the results
"""

from fhir_conformance import ARGONAUT_DATA_QUERY, FHIRClient, fetch_capabilities, run_sequence
from fhir_conformance import config, db
from fhir_conformance.runner.aggregate import write_outputs
from fhir_conformance.sequences.argonaut import PATIENT_ID_KEY


def main():
    """Run the Argonaut sequence against the server named in the environment."""

    # 1. Server connection
    base_url = config.get_env(config.ENV_BASE_URL)
    if not base_url:
        print(f"Server not configured, set {config.ENV_BASE_URL}")
        return 1
    token = config.get_env(config.ENV_TOKEN)
    patient_id = config.get_env(config.ENV_PATIENT_ID)

    with FHIRClient(base_url, token=token) as client:
        # 2. Capability statement
        capabilities = fetch_capabilities(client)
        print(f"Server declares: {', '.join(capabilities.resource_kinds())}")

        # 3. Run the sequence
        result = run_sequence(
            ARGONAUT_DATA_QUERY,
            client,
            capabilities,
            seed={PATIENT_ID_KEY: patient_id},
        )

    # 4. Results
    path = write_outputs(result, config.DEFAULT_OUT_DIR, "example")
    print(f"Results written to {path}")

    print(f"\nSummary for {result.sequence_name}:")
    print(f"   Passed:   {result.passed_count}")
    print(f"   Failed:   {result.failed_count}")
    print(f"   Warnings: {result.warning_count}")
    print(f"   Skipped:  {result.skipped_count}")
    print(f"   Errors:   {result.error_count}")
    print(f"   Verdict:  {result.result}")

    db_url = config.get_env(config.ENV_DB_URL) or config.build_db_url()
    if db_url:
        engine = db.make_engine(db_url)
        db.create_schema(engine)
        db.save_sequence_result(engine, result)
        print(f"Stored result {result.id}")

    return 0 if result.conformant else 1


if __name__ == "__main__":
    exit(main())
