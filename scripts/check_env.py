"""Report the credentials each integration needs but the ``.env`` file lacks.

Missing values are otherwise only discovered when a request fails::

    python -m scripts.check_env --env-file /opt/inmuebles-crm/.env --strict
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from crm_api.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_RUNTIME_ERROR = 5


def _missing_credentials(settings: AppSettings) -> list[str]:
    problems: list[str] = []
    if not settings.google.client_id or not settings.google.client_secret:
        problems.append(
            "calendar-auth: GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET are required."
        )
    if not (settings.security.token_encryption_secret or settings.google.client_secret):
        problems.append(
            "credential store: set TOKEN_ENCRYPTION_SECRET (or GOOGLE_CLIENT_SECRET)."
        )
    if settings.storage.backend == "dynamodb" and not settings.storage.dynamodb_table_name:
        problems.append("credential store: DYNAMODB_TABLE_NAME is required for dynamodb.")
    if settings.storage.backend == "firestore" and not (
        settings.firebase.project_id or settings.firebase.service_account_json
    ):
        problems.append(
            "credential store: FIREBASE_PROJECT_ID or FIREBASE_SERVICE_ACCOUNT is "
            "required for firestore."
        )
    if not settings.drive.service_account_email or not settings.drive.private_key:
        problems.append(
            "upload-to-drive: GOOGLE_SERVICE_ACCOUNT_EMAIL and GOOGLE_PRIVATE_KEY "
            "are required."
        )
    return problems


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check integration credentials in a .env file.")
    parser.add_argument("--env-file", default=".env", type=Path)
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail when any integration is missing credentials.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        _load_env_file(str(env_file))
        problems = _missing_credentials(AppSettings())
    except ValidationError as exc:
        print(f"Invalid settings:\n{exc.json(indent=2)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR

    if not problems:
        print("All integrations configured.")
        return EXIT_OK

    print("Missing credentials:", file=sys.stderr)
    for problem in problems:
        print(f"  - {problem}", file=sys.stderr)
    return EXIT_VALIDATION_ERROR if args.strict else EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
