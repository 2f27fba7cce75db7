"""Generate JSON schemas for the compiled output models and save to schemas/ directory."""

import json
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mcpdecl.api import CheckResult
from mcpdecl.kernel.declarations import ParseResult
from mcpdecl.kernel.validation import SkillValidationConfig

SCHEMAS = {
    "parse_result.schema.json": ParseResult,
    "check_result.schema.json": CheckResult,
    "validation_config.schema.json": SkillValidationConfig,
}


def generate_schemas():
    """Generate JSON schemas for all output models."""
    schemas_dir = Path(__file__).parent.parent / "schemas"
    schemas_dir.mkdir(exist_ok=True)

    for filename, model in SCHEMAS.items():
        schema_path = schemas_dir / filename
        with open(schema_path, 'w', encoding='utf-8') as f:
            json.dump(model.model_json_schema(), f, indent=2, ensure_ascii=False)
        print(f"Generated: {schema_path}")

    print("\nSchema generation complete!")


if __name__ == "__main__":
    generate_schemas()
