from django.core.management.base import BaseCommand

from apps.catalog.services.seeding import remove_product_by_slug, seed_demo_catalog


class Command(BaseCommand):
    help = 'Seed the demo jersey catalog (re-creates products that already exist)'

    def add_arguments(self, parser):
        parser.add_argument('--season', type=str, default='25/26')
        parser.add_argument(
            '--remove',
            type=str,
            metavar='SLUG',
            help='Only remove the product with this slug and its options',
        )

    def handle(self, *args, **options):
        slug = options.get('remove')
        if slug:
            if remove_product_by_slug(slug):
                self.stdout.write(self.style.SUCCESS(f'Removed {slug}'))
            else:
                self.stdout.write(self.style.WARNING(f'No product with slug {slug}'))
            return

        products = seed_demo_catalog(season=options['season'])
        for product in products:
            self.stdout.write(f'  {product.slug}')
        self.stdout.write(self.style.SUCCESS(f'Seeded {len(products)} products'))
