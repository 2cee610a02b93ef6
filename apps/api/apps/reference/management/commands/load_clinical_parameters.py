"""
Management command to load clinical parameters and their reference ranges.

Usage:
    python manage.py load_clinical_parameters parameters.json [--dry-run]

The file holds a list of parameter documents:

    [
        {
            "name": "hemoglobin",
            "display_name": "Hemoglobin",
            "kind": "lab",
            "default_unit": "g/dL",
            "reference_ranges": {
                "adult_male": {"min": 13.5, "max": 17.5, "critical_low": 7.0, "critical_high": 20.0},
                "default": {"min": 12.0, "max": 17.5}
            }
        }
    ]

Every bucket is validated before anything is written; one malformed bucket
rejects the whole file. Existing parameters are updated in place.
"""
import json

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.core.exceptions import NotEvaluable
from apps.reference.models import ClinicalParameter, ParameterKindChoices
from apps.reference.store import PopulationBucket, parse_reference_range


class Command(BaseCommand):
    help = 'Load clinical parameters and reference ranges from a JSON file'

    def add_arguments(self, parser):
        parser.add_argument('path', help='JSON file with a list of parameter documents')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Validate only, write nothing',
        )

    def handle(self, *args, **options):
        try:
            with open(options['path'], encoding='utf-8') as fh:
                documents = json.load(fh)
        except (OSError, ValueError) as exc:
            raise CommandError(f'Cannot read {options["path"]}: {exc}')

        if not isinstance(documents, list):
            raise CommandError('Expected a JSON list of parameter documents')

        for document in documents:
            self._validate(document)

        self.stdout.write(f'Validated {len(documents)} parameters')
        if options['dry_run']:
            self.stdout.write(self.style.WARNING('DRY RUN - no changes written'))
            return

        created_count = 0
        updated_count = 0
        with transaction.atomic():
            for document in documents:
                _, created = ClinicalParameter.objects.update_or_create(
                    name=document['name'],
                    defaults={
                        'display_name': document.get('display_name') or document['name'],
                        'kind': document['kind'],
                        'default_unit': document.get('default_unit', ''),
                        'reference_ranges': document.get('reference_ranges', {}),
                        'is_active': document.get('is_active', True),
                    },
                )
                if created:
                    created_count += 1
                else:
                    updated_count += 1

        self.stdout.write(
            self.style.SUCCESS(f'\nSummary: {created_count} created, {updated_count} updated')
        )

    def _validate(self, document):
        if not isinstance(document, dict) or not document.get('name'):
            raise CommandError(f'Parameter document without a name: {document!r}')
        name = document['name']
        if document.get('kind') not in ParameterKindChoices.values:
            raise CommandError(f'{name}: kind must be one of {", ".join(ParameterKindChoices.values)}')

        ranges = document.get('reference_ranges', {})
        if not isinstance(ranges, dict):
            raise CommandError(f'{name}: reference_ranges must be keyed by bucket')
        for bucket, raw in ranges.items():
            if bucket not in PopulationBucket.values:
                raise CommandError(f'{name}: unknown bucket {bucket!r}')
            try:
                parse_reference_range(name, bucket, raw, document.get('default_unit', ''))
            except NotEvaluable as exc:
                raise CommandError(str(exc))
