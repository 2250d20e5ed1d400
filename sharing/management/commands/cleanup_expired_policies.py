from django.core.management.base import BaseCommand

from sharing.services import NodePermissionService


class Command(BaseCommand):
    help = "Delete node sharing policies whose expiry has passed."

    def handle(self, *args, **options):
        deleted = NodePermissionService.cleanup_expired_policies()
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} expired policies"))
