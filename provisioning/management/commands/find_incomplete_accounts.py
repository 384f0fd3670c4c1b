"""
Management command to list identities left partially provisioned
"""
from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError
from django.db.models import Q

from education.models import CustomUser, School


class Command(BaseCommand):
    help = 'List identities that hold no role, and role holders missing their school link'

    def add_arguments(self, parser):
        parser.add_argument(
            '--school-id',
            help='Only check identities linked to, or issued credentials for, this school',
        )

    def handle(self, *args, **options):
        school_id = options.get('school_id')

        users = CustomUser.objects.filter(is_superuser=False)
        if school_id:
            try:
                school = School.objects.get(pk=school_id)
            except (School.DoesNotExist, ValidationError):
                raise CommandError(f"School {school_id} not found")
            scoped = CustomUser.objects.filter(
                Q(metadata__school_id=str(school.pk)) | Q(school_links__school=school)
            ).values('pk')
            users = users.filter(pk__in=scoped)

        without_role = users.filter(roles__isnull=True).distinct().order_by('email')
        without_school = users.filter(
            roles__role__in=['teacher', 'student', 'parent'],
            school_links__isnull=True
        ).distinct().order_by('email')

        self.stdout.write(f"Checking {users.count()} identities...")

        for user in without_role:
            self.stdout.write(
                self.style.WARNING(
                    f"No role: {user.email} ({user.pk}) entity_type={user.metadata.get('entity_type', '-')}"
                )
            )
        for user in without_school:
            self.stdout.write(self.style.WARNING(f"No school link: {user.email} ({user.pk})"))

        total = without_role.count() + without_school.count()
        if total:
            self.stdout.write(self.style.ERROR(f"Found {total} incomplete account(s)"))
        else:
            self.stdout.write(self.style.SUCCESS("No incomplete accounts found"))
