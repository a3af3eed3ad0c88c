#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import List, Optional

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from marketsync.config.loader import ConfigLoader
from marketsync.config.validation import ConfigValidator, ValidationError
from marketsync.errors import ConfigurationError


def validate_config_dir(config_dir: Optional[Path] = None) -> List[ValidationError]:
    """Validate the merged configuration for a config directory."""
    loader = ConfigLoader.create(config_dir)
    return ConfigValidator.validate(loader.merge_config())


def main():
    """Main validation function."""
    config_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    loader = ConfigLoader.create(config_dir)
    print(f"🔍 Validating marketsync configuration in {loader.config_dir}...")

    try:
        errors = validate_config_dir(config_dir)
    except ConfigurationError as e:
        print(f"❌ Could not read configuration: {e}")
        sys.exit(1)

    if errors:
        print(f"❌ Found {len(errors)} validation errors:")
        for error in errors:
            print(f"  • {error.field}: {error.message} (value: {error.value!r})")
        sys.exit(1)

    config = loader.load()
    print(f"✅ Configuration is valid")
    print(f"  • server: {config.transport.url}")
    print(f"  • trade timeout: {config.trading.timeout_seconds}s")
    print(f"  • outbound events: {config.events.submit_buy} / {config.events.submit_sell}")
    sys.exit(0)


if __name__ == "__main__":
    main()
