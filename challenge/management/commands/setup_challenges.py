import json
import os

import jsonschema
from django.core.management.base import BaseCommand
from django.conf import settings
from challenge.models import Challenge
from notifications.models import Notification
from tasks.tasks import send_notification

metadata_schema = {
    "type": "object",
    "required": ["NAME", "POINTS", "FLAG", "ACTIVE", "CATEGORY"],
    "properties": {
        "NAME": {"type": "string", "minLength": 1},
        "POINTS": {"type": "integer", "minimum": 0},
        "FLAG": {"type": "string", "minLength": 1},
        "ACTIVE": {"type": "boolean"},
        "CATEGORY": {"type": "string"},
        "DESCRIPTION": {"type": "string"},
        "DIFFICULTY": {"type": "string"},
        "AUTHOR": {"type": "string"},
        "FLAG_FORMAT": {"type": "string"},
        "ATTACHMENT_URL": {"type": ["string", "null"]},
        "INSTANCE_URL": {"type": ["string", "null"]},
        "HINTS": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["content", "cost"],
                "properties": {
                    "content": {"type": "string"},
                    "cost": {"type": "integer", "minimum": 0},
                },
            },
        },
    },
}


class Command(BaseCommand):
    help = "Create or update challenges in the database from metadata.json files"

    def add_arguments(self, parser):
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Print detailed output",
        )
        parser.add_argument(
            "--challenge-name",
            type=str,
            default="",
            help="Process only a specific challenge directory",
        )
        parser.add_argument(
            "--challenges-dir",
            type=str,
            default=settings.CHALLENGES_DIRECTORY,
            help="Path to challenges directory",
        )

    def handle(self, *args, **options):
        verbose = options["verbose"]
        challenge_name = options["challenge_name"]
        challenges_directory = options["challenges_dir"]

        if not os.path.exists(challenges_directory):
            self.stdout.write(
                self.style.ERROR(
                    f"Challenges directory not found: {challenges_directory}"
                )
            )
            return

        for challenge_dir_name in sorted(os.listdir(challenges_directory)):
            if challenge_name and challenge_dir_name != challenge_name:
                continue

            challenge_directory = os.path.join(challenges_directory, challenge_dir_name)
            if not os.path.isdir(challenge_directory):
                continue

            metadata_file = os.path.join(challenge_directory, "metadata.json")
            if not os.path.exists(metadata_file):
                if verbose:
                    self.stdout.write(
                        self.style.WARNING(
                            f"metadata.json missing for {challenge_dir_name}"
                        )
                    )
                continue

            try:
                with open(metadata_file) as f:
                    challenge_metadata = json.load(f)
            except Exception as err:
                self.stdout.write(
                    self.style.ERROR(
                        f"Error parsing metadata.json for {challenge_dir_name}: {err}"
                    )
                )
                continue

            try:
                jsonschema.validate(challenge_metadata, metadata_schema)
            except jsonschema.ValidationError as err:
                self.stdout.write(
                    self.style.ERROR(
                        f"metadata.json for {challenge_dir_name} is invalid: {err.message}"
                    )
                )
                continue

            fields = {
                "points": challenge_metadata["POINTS"],
                "flag": challenge_metadata["FLAG"],
                "active": challenge_metadata["ACTIVE"],
                "category": challenge_metadata["CATEGORY"],
                "description": challenge_metadata.get("DESCRIPTION", ""),
                "difficulty": challenge_metadata.get("DIFFICULTY", "medium"),
                "author": challenge_metadata.get("AUTHOR", ""),
                "flag_format": challenge_metadata.get(
                    "FLAG_FORMAT", settings.FLAG_FORMAT
                ),
                "hints": challenge_metadata.get("HINTS", []),
                "attachment_url": challenge_metadata.get("ATTACHMENT_URL"),
                "instance_url": challenge_metadata.get("INSTANCE_URL"),
                "metadata_filepath": metadata_file,
            }

            try:
                challenge_obj = Challenge.objects.filter(
                    name=challenge_metadata["NAME"]
                ).first()

                if challenge_obj is None:
                    self.stdout.write(
                        f"Creating database entry for {challenge_dir_name}..."
                    )
                    challenge_obj = Challenge.objects.create(
                        name=challenge_metadata["NAME"], **fields
                    )
                    self.stdout.write(
                        self.style.SUCCESS(
                            f"Successfully created database entry for {challenge_dir_name}"
                        )
                    )
                    if fields["active"]:
                        send_notification.delay(
                            f"Challenge {challenge_metadata['NAME']} has been released.",
                            kind=Notification.CHALLENGE_RELEASED,
                            to_all=True,
                            challenge_id=challenge_obj.id,
                        )
                    continue

                self.stdout.write(f"Updating database entry for {challenge_dir_name}...")

                changes = []
                if challenge_obj.points != fields["points"]:
                    changes.append(
                        f"points changed from {challenge_obj.points} to {fields['points']}"
                    )
                if challenge_obj.flag != fields["flag"]:
                    changes.append("flag has been updated")
                if challenge_obj.hints != fields["hints"]:
                    changes.append("hints have been updated")
                if fields["active"] and not challenge_obj.active:
                    changes.append("status changed from inactive to active")
                elif not fields["active"] and challenge_obj.active:
                    changes.append("status changed from active to inactive")

                for field_name, value in fields.items():
                    setattr(challenge_obj, field_name, value)
                challenge_obj.save()

                self.stdout.write(
                    self.style.SUCCESS(
                        f"Successfully updated database entry for {challenge_dir_name}"
                    )
                )
                if changes and verbose:
                    for change in changes:
                        self.stdout.write(f"  - {change}")

            except Exception as err:
                self.stdout.write(
                    self.style.ERROR(
                        f"Error saving database entry for {challenge_dir_name}: {err}"
                    )
                )

        self.stdout.write(self.style.SUCCESS("Challenge setup completed!"))
