#!/usr/bin/env python3
"""
Export JSON Schemas for the claim intake contracts.

Writes the schemas of ClaimForm, FraudResult and VerificationSummary, and
validates example claim forms if any exist in data/examples/.
"""

import json
import sys
from pathlib import Path

from pydantic import ValidationError

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.claims.schema import ClaimForm, FraudResult, VerificationSummary

SCHEMAS = {
    "claim_form": ClaimForm,
    "fraud_result": FraudResult,
    "verification_summary": VerificationSummary,
}


def export_json_schemas(output_dir: str = "data/schemas") -> dict:
    """Export one JSON Schema file per contract model."""
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    schemas = {}
    for name, model in SCHEMAS.items():
        schema = model.model_json_schema(by_alias=True)
        output_file = output_path / f"{name}.json"
        with open(output_file, "w", encoding="utf-8") as f:
            json.dump(schema, f, indent=2, ensure_ascii=False)

        print(f"✓ {schema['title']} schema exported to: {output_file}")
        print(f"  Properties: {len(schema.get('properties', {}))} top-level fields")
        schemas[name] = schema
    return schemas


def validate_example_claims(examples_dir: str = "data/examples"):
    """Validate example claim form JSON files."""
    example_files = sorted(Path(examples_dir).glob("claim_*.json"))

    if not example_files:
        print(f"⚠ No example claim files found in {examples_dir}/")
        return

    print(f"\n{'='*60}")
    print("Validating Example Claims")
    print('='*60)

    valid_count = 0
    invalid_count = 0

    for example_file in example_files:
        print(f"\n📄 {example_file.name}")
        try:
            with open(example_file, "r", encoding="utf-8") as f:
                form = ClaimForm.model_validate(json.load(f))
        except (ValidationError, json.JSONDecodeError) as e:
            print(f"  ✗ Invalid: {e}")
            invalid_count += 1
            continue

        print(f"  ✓ Valid")
        print(f"    Claimant: {form.full_name}")
        print(f"    Type: {form.claim_type.value}")
        print(f"    Amount: {form.claim_amount}")
        valid_count += 1

    print(f"\n{'='*60}")
    print(f"Results: {valid_count} valid, {invalid_count} invalid")
    print('='*60)


def main():
    """Main entry point."""
    print("="*60)
    print("Claim Intake - JSON Schema Export")
    print("="*60)

    export_json_schemas()
    validate_example_claims()


if __name__ == "__main__":
    main()
