"""
Management command to seed the permission catalog and system roles.

Creates all global Permission records and resyncs the system roles of
every tenant. This command is idempotent and safe to re-run.
"""
from django.core.management.base import BaseCommand
from apps.iam.services import PermissionService, RoleService
from apps.tenants.models import Tenant


class Command(BaseCommand):
    help = 'Seed the permission catalog and system roles (idempotent)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--tenant',
            type=str,
            help='Only resync system roles for this tenant slug',
        )
        parser.add_argument(
            '--skip-roles',
            action='store_true',
            help='Only seed permissions',
        )

    def handle(self, *args, **options):
        created = PermissionService.ensure_catalog()
        self.stdout.write(self.style.SUCCESS(f"Permissions: {created} created"))

        if options['skip_roles']:
            return

        tenants = Tenant.objects.all()
        if options.get('tenant'):
            tenants = tenants.filter(slug=options['tenant'])
            if not tenants.exists():
                self.stdout.write(self.style.ERROR(f"Tenant not found: {options['tenant']}"))
                return

        count = 0
        for tenant in tenants:
            RoleService.seed_system_roles(tenant)
            for role in tenant.roles.filter(is_system=True):
                PermissionService.invalidate_role(role)
            count += 1

        self.stdout.write(self.style.SUCCESS(f"System roles synced for {count} tenant(s)"))
