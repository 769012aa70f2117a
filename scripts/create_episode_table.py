"""Create the episode table (with its queue indexes) and seed sample episodes.

Usage:
    python scripts/create_episode_table.py --endpoint-url http://localhost:4566 --seed
"""

from __future__ import annotations

import argparse
from typing import Any

import boto3

from triageguard.models.episode import AIAssessment, Episode, Symptoms, TriageAssessment, UrgencyLevel
from triageguard.persistence.dynamodb_backend import episode_to_item

DEFAULT_TABLE_NAME = "triageguard-episodes"
VALIDATION_STATUS_INDEX = "ValidationStatusIndex"
SUPERVISOR_INDEX = "SupervisorAssignmentIndex"


def create_table(ddb: Any, table_name: str = DEFAULT_TABLE_NAME, suffix: str = "") -> bool:
    """Create the episode table. Returns False if it already exists."""
    client = ddb.meta.client
    full_name = f"{table_name}{suffix}"
    existing = client.list_tables().get("TableNames", [])
    if full_name in existing:
        print(f"  Table {full_name} already exists, skipping")
        return False

    client.create_table(
        TableName=full_name,
        KeySchema=[{"AttributeName": "episodeId", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "episodeId", "AttributeType": "S"},
            {"AttributeName": "validationStatus", "AttributeType": "S"},
            {"AttributeName": "queuedAt", "AttributeType": "S"},
            {"AttributeName": "assignedSupervisor", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": VALIDATION_STATUS_INDEX,
                "KeySchema": [
                    {"AttributeName": "validationStatus", "KeyType": "HASH"},
                    {"AttributeName": "queuedAt", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
            {
                "IndexName": SUPERVISOR_INDEX,
                "KeySchema": [
                    {"AttributeName": "validationStatus", "KeyType": "HASH"},
                    {"AttributeName": "assignedSupervisor", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    print(f"  Created table {full_name}")
    return True


def sample_episodes() -> list[Episode]:
    """One triaged, not yet submitted episode per urgency level."""
    samples = [
        (UrgencyLevel.EMERGENCY, "Crushing chest pain radiating to left arm", 9, "30 minutes", 0.92),
        (UrgencyLevel.URGENT, "High fever with stiff neck", 7, "1 day", 0.81),
        (UrgencyLevel.ROUTINE, "Persistent dry cough", 4, "2 weeks", None),
        (UrgencyLevel.SELF_CARE, "Mild seasonal allergies", 2, "3 days", None),
    ]
    episodes = []
    for i, (urgency, complaint, severity, duration, confidence) in enumerate(samples, start=1):
        episodes.append(Episode(
            episode_id=f"sample-episode-{i}",
            patient_id=f"sample-patient-{i}",
            symptoms=Symptoms(primary_complaint=complaint, severity=severity, duration=duration),
            triage_assessment=TriageAssessment(
                urgency_level=urgency,
                rule_based_score=severity * 10,
                final_score=severity * 10,
                ai_assessment=AIAssessment(
                    used=confidence is not None,
                    confidence=confidence,
                    reasoning="Sample AI reasoning" if confidence is not None else None,
                ),
            ),
        ))
    return episodes


def seed_sample_episodes(ddb: Any, table_name: str = DEFAULT_TABLE_NAME, suffix: str = "") -> int:
    tbl = ddb.Table(f"{table_name}{suffix}")
    episodes = sample_episodes()
    with tbl.batch_writer() as batch:
        for episode in episodes:
            batch.put_item(Item=episode_to_item(episode))
    print(f"  Seeded {len(episodes)} sample episodes")
    return len(episodes)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create the triageguard episode table")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-name", default=DEFAULT_TABLE_NAME, help="Base table name")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--seed", action="store_true", help="Also write sample episodes")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating episode table...")
    create_table(ddb, args.table_name, args.table_suffix)

    if args.seed:
        print("Seeding sample episodes...")
        seed_sample_episodes(ddb, args.table_name, args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
