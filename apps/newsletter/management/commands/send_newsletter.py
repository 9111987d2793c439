"""Send a newsletter to every active subscriber from the command line."""

from django.core.management.base import BaseCommand, CommandError

from apps.newsletter.models import NewsletterCampaign
from apps.newsletter.services.batch import send_newsletter


class Command(BaseCommand):
    help = 'Send a newsletter to all active subscribers'

    def add_arguments(self, parser):
        parser.add_argument('--subject', type=str, required=True)
        parser.add_argument('--message', type=str, default='')
        parser.add_argument('--content-json', type=str, default='', help='Composer blocks as a JSON list')
        parser.add_argument(
            '--style',
            type=str,
            choices=[c[0] for c in NewsletterCampaign.Style.choices],
            default=NewsletterCampaign.Style.SIMPLE,
        )

    def handle(self, *args, **options):
        result = send_newsletter(
            subject=options['subject'],
            message=options['message'],
            style=options['style'],
            content_json=options['content_json'] or None,
        )
        if 'error' in result:
            raise CommandError(result['error'])

        summary = f"Sent {result['sent']}/{result['total']} (failed: {result['failed']})"
        if result['ok']:
            self.stdout.write(self.style.SUCCESS(summary))
        else:
            self.stdout.write(self.style.WARNING(summary))
            for detail in result['details']:
                self.stdout.write(f'  {detail}')
