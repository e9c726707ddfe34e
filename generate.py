#!/usr/bin/env python3
"""
Key Router CLI
Generates text for a prompt using the stored key pool, falling back across
keys and models exactly like the web API does.
"""

import sys
import argparse
import logging

from keyrouter import AggregateFailure, KeyRouter, KeySourcer, NoCredentialsAvailable
from keyrouter.ai import GeminiProvider
from keyrouter.config import load_config


def main():
    parser = argparse.ArgumentParser(
        description="Generate text with automatic API key rotation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python generate.py "Summarize my week in three bullets"
  python generate.py "Plan my day" --user 42
  python generate.py "Hello" --model gemini-2.0-flash --model gemini-1.5-flash
  echo "Long prompt" | python generate.py -
  echo "CREDENTIAL_ENCRYPTION_KEY=$(python generate.py --generate-key)" >> .env
        """
    )
    parser.add_argument(
        "prompt",
        nargs="?",
        help="Prompt text, or - to read from stdin"
    )
    parser.add_argument(
        "--user",
        type=str,
        default=None,
        help="Requester ID whose personal keys are tried first"
    )
    parser.add_argument(
        "--model",
        action="append",
        dest="models",
        help="Model to try (repeatable, tried in order). Defaults to GENERATIVE_MODELS"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show routing decisions"
    )
    parser.add_argument(
        "--generate-key",
        action="store_true",
        help="Print a new CREDENTIAL_ENCRYPTION_KEY value and exit"
    )

    args = parser.parse_args()

    if args.generate_key:
        from app.crypto import generate_key
        print(generate_key())
        return
    if args.prompt is None:
        parser.error("a prompt is required")

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    prompt = sys.stdin.read() if args.prompt == "-" else args.prompt
    if not prompt.strip():
        print("❌ Error: Prompt is empty", file=sys.stderr)
        sys.exit(1)

    config = load_config()
    try:
        config.validate()
    except ValueError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)

    # App imports deferred until the config is known to be valid
    from app.api_keys import APIKeyStore, SystemSettingsStore
    from app.crypto import SecretCipher
    from app.database import SessionLocal, init_db

    init_db()
    db = SessionLocal()
    try:
        cipher = SecretCipher(config.encryption_key)
        store = APIKeyStore(db, cipher)
        sourcer = KeySourcer(store, system_config=SystemSettingsStore(db, cipher))
        router = KeyRouter(sourcer, GeminiProvider(), store, default_models=config.default_models)
        text = router.generate(prompt, requester_id=args.user, models=args.models)
    except (NoCredentialsAvailable, AggregateFailure) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        db.close()

    print(text)


if __name__ == "__main__":
    main()
