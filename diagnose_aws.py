import argparse
import sys
from datetime import date
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from costboard.modules.billing.domain.error_classifier import ErrorKind, classify
from costboard.modules.billing.domain.periods import CalendarMonth, DateRange
from costboard.shared.adapters.aws_utils import AWSClientConfig
from costboard.shared.core.config import DEFAULT_AWS_REGION, Settings, get_settings
from costboard.shared.core.currency import format_currency, parse_cost_amount

CREDENTIAL_VARIABLES = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN")


def _client(config: AWSClientConfig, service_name: str) -> Any:
    return boto3.client(**config.client_kwargs(service_name))


def print_environment(settings: Optional[Settings] = None) -> None:
    """Report credentials as the app sees them (environment and .env)."""
    settings = settings or get_settings()
    print("--- Environment ---")
    for name in CREDENTIAL_VARIABLES:
        state = "SET" if getattr(settings, name) else "NOT SET"
        print(f"[*] {name}: {state}")
    print(f"[*] AWS_REGION: {settings.AWS_REGION} (default: {DEFAULT_AWS_REGION})")


def print_advice(error: Exception) -> None:
    classification = classify(error)
    print("\n--- Troubleshooting Advice ---")
    if classification.kind is ErrorKind.AUTHENTICATION_FAILURE:
        print("1. The access key is unknown to AWS or has been deactivated.")
        print("   Regenerate it under IAM -> Users -> Security credentials.")
        print("2. Temporary credentials also need AWS_SESSION_TOKEN and may have expired.")
    elif classification.kind is ErrorKind.AUTHORIZATION_FAILURE:
        print("1. Attach a policy allowing 'ce:GetCostAndUsage' to the IAM identity.")
        print("2. For IAM users, the account owner must enable")
        print("   'IAM user and role access to Billing information' in Account settings.")
        print("3. Cost Explorer must be enabled once in the Billing console (takes ~24h).")
    else:
        print(f"Upstream error: {classification.user_message}")
        print("Check network access to the Cost Explorer endpoint and CloudTrail for details.")


def diagnose_aws(config: AWSClientConfig, today: Optional[date] = None) -> int:
    """
    Check credentials (sts:GetCallerIdentity) and Cost Explorer access
    (last month's total). Returns a process exit code.
    """
    print("=== costboard AWS Diagnostic Tool ===")
    print_environment()

    print("\n--- Identity ---")
    try:
        identity = _client(config, "sts").get_caller_identity()
    except (ClientError, BotoCoreError) as e:
        print("[!] Error: Could not get caller identity. Check your AWS_ACCESS_KEY_ID/SECRET.")
        print(f"    Details: {str(e)}")
        print_advice(e)
        return 1
    print(f"[*] Current IAM Identity: {identity['Arn']}")
    print(f"[*] Account ID: {identity['Account']}")

    print("\n--- Cost Explorer ---")
    last_month = CalendarMonth.from_date(today or date.today()).shift(-1)
    date_range = DateRange.for_month(last_month)
    try:
        response = _client(config, "ce").get_cost_and_usage(
            TimePeriod=date_range.to_time_period(),
            Granularity="MONTHLY",
            Metrics=["UnblendedCost"],
        )
    except (ClientError, BotoCoreError) as e:
        print(f"[FAILURE] Cost Explorer query failed: {str(e)}")
        print_advice(e)
        return 1

    results = response.get("ResultsByTime") or [{}]
    amount = (results[0].get("Total") or {}).get("UnblendedCost", {}).get("Amount")
    print("[SUCCESS] Cost Explorer access: Available")
    print(f"[SUCCESS] {last_month.label} cost: {format_currency(parse_cost_amount(amount))}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Validate AWS credentials and Cost Explorer access for costboard."
    )
    parser.add_argument("--region", help="Override AWS_REGION for this check")
    args = parser.parse_args(argv)

    config = AWSClientConfig.from_settings(get_settings())
    if args.region:
        config = AWSClientConfig(
            region=args.region,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            session_token=config.session_token,
            endpoint_url=config.endpoint_url,
        )
    return diagnose_aws(config)


if __name__ == "__main__":
    sys.exit(main())
