# Generated manually: every installation needs the catch-all category

from decimal import Decimal

from django.db import migrations


def create_uncategorized(apps, schema_editor):
    Category = apps.get_model('catalog', 'Category')
    if not Category.objects.filter(is_system=True).exists():
        Category.objects.create(
            name='Da Assegnare',
            profit_margin=Decimal('0.00'),
            vat_rate=Decimal('22.00'),
            is_system=True,
        )


class Migration(migrations.Migration):

    dependencies = [
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_uncategorized, migrations.RunPython.noop),
    ]
