"""
Management command to make sure the 'Da Assegnare' category exists
"""
from django.core.management.base import BaseCommand
from gestionale.catalog.models import Category


class Command(BaseCommand):
    help = "Creates the built-in 'Da Assegnare' category if it is missing"

    def handle(self, *args, **options):
        existed = Category.objects.filter(is_system=True).exists()
        category = Category.get_uncategorized()
        if existed:
            self.stdout.write(f"Category '{category.name}' already present (ID: {category.id})")
        else:
            self.stdout.write(self.style.SUCCESS(f"Created category '{category.name}' (ID: {category.id})"))
