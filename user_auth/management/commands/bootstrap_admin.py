from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from user_auth.models import User


class Command(BaseCommand):
    help = "Create the administrative user, or promote an existing one, from ADMIN_* settings"

    def add_arguments(self, parser):
        parser.add_argument("--username", type=str, default=settings.ADMIN_USERNAME)
        parser.add_argument("--email", type=str, default=settings.ADMIN_EMAIL)
        parser.add_argument(
            "--password",
            type=str,
            default=settings.ADMIN_PASSWORD,
            help="Defaults to the ADMIN_PASSWORD environment variable",
        )

    def handle(self, *args, **options):
        username = options["username"]
        email = options["email"]
        password = options["password"]

        user = User.objects.filter(username=username).first()
        if user is None:
            if not password:
                raise CommandError(
                    "ADMIN_PASSWORD is not set; refusing to create an admin without a password"
                )
            user = User.objects.create_user(
                username=username, email=email, password=password
            )
            self.stdout.write(f"Created user {username}")
        elif password:
            user.set_password(password)

        user.is_admin = True
        user.is_staff = True
        user.save()

        self.stdout.write(self.style.SUCCESS(f"{username} is an administrator"))
