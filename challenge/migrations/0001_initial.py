import challenge.models
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Challenge",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("name", models.CharField(max_length=150, unique=True)),
                ("description", models.TextField(blank=True, default="")),
                ("category", models.CharField(max_length=150)),
                ("difficulty", models.CharField(default="medium", max_length=32)),
                ("author", models.CharField(blank=True, default="", max_length=150)),
                ("points", models.IntegerField()),
                ("flag", models.CharField(max_length=500)),
                (
                    "flag_format",
                    models.CharField(
                        default=challenge.models.default_flag_format, max_length=150
                    ),
                ),
                ("hints", models.JSONField(blank=True, default=list)),
                (
                    "attachment_url",
                    models.CharField(blank=True, max_length=500, null=True),
                ),
                (
                    "instance_url",
                    models.CharField(blank=True, max_length=500, null=True),
                ),
                ("active", models.BooleanField(db_index=True, default=True)),
                ("total_solves", models.IntegerField(default=0)),
                (
                    "metadata_filepath",
                    models.CharField(blank=True, max_length=256, null=True),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "challenge",
                "managed": True,
                "indexes": [
                    models.Index(fields=["active"], name="idx_challenge_active")
                ],
            },
        ),
        migrations.CreateModel(
            name="Solve",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("solved_at", models.DateTimeField()),
                ("is_first_blood", models.BooleanField(default=False)),
                ("points_awarded", models.IntegerField()),
                ("solve_time", models.IntegerField(blank=True, null=True)),
                ("hints_used", models.IntegerField(default=0)),
                (
                    "challenge",
                    models.ForeignKey(
                        db_column="challenge_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to="challenge.challenge",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        db_column="user_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "solve",
                "managed": True,
                "indexes": [
                    models.Index(
                        fields=["challenge", "solved_at"], name="idx_solve_chal_time"
                    ),
                    models.Index(fields=["solved_at"], name="idx_solve_time"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "challenge"),
                        name="uniq_solve_user_challenge",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("is_first_blood", True)),
                        fields=("challenge",),
                        name="uniq_solve_first_blood",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="FlagSubmission",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("submitted_flag", models.TextField()),
                ("is_correct", models.BooleanField(db_index=True)),
                ("ip_address", models.CharField(blank=True, max_length=45, null=True)),
                ("user_agent", models.TextField(blank=True, null=True)),
                ("submitted_at", models.DateTimeField()),
                (
                    "challenge",
                    models.ForeignKey(
                        db_column="challenge_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to="challenge.challenge",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        db_column="user_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "flag_submission",
                "managed": True,
                "indexes": [
                    models.Index(
                        fields=["user", "challenge", "submitted_at"],
                        name="idx_flagsub_user_chal_time",
                    ),
                    models.Index(
                        fields=["challenge", "is_correct"],
                        name="idx_flagsub_chal_correct",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RateLimit",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("attempts", models.IntegerField(default=0)),
                ("last_attempt", models.DateTimeField()),
                ("next_allowed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "challenge",
                    models.ForeignKey(
                        db_column="challenge_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to="challenge.challenge",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        db_column="user_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "rate_limit",
                "managed": True,
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "challenge"),
                        name="uniq_ratelimit_user_challenge",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="HintUsage",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("hint_index", models.IntegerField()),
                ("cost", models.IntegerField(default=0)),
                ("used_at", models.DateTimeField(auto_now_add=True)),
                (
                    "challenge",
                    models.ForeignKey(
                        db_column="challenge_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to="challenge.challenge",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        db_column="user_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "hint_usage",
                "managed": True,
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "challenge", "hint_index"),
                        name="uniq_hint_usage",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Achievement",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("first_blood", "First Blood!"),
                            ("first_solve", "Getting Started"),
                            ("solver", "Problem Solver"),
                            ("expert", "Expert Hacker"),
                        ],
                        max_length=32,
                    ),
                ),
                ("title", models.CharField(max_length=150)),
                ("description", models.CharField(max_length=255)),
                ("icon", models.CharField(blank=True, default="", max_length=16)),
                ("awarded_at", models.DateTimeField(auto_now_add=True)),
                (
                    "challenge",
                    models.ForeignKey(
                        blank=True,
                        db_column="challenge_id",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="challenge.challenge",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        db_column="user_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "achievement",
                "managed": True,
                "ordering": ["-awarded_at"],
            },
        ),
    ]
