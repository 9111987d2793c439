import json

from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from apps.accounts.access import staff_required

from .forms import NewsletterSendForm, SubscribeForm
from .models import NewsletterCampaign
from .services.batch import send_newsletter
from .services.subscriptions import subscribe as subscribe_email, unsubscribe as unsubscribe_token

CAMPAIGN_LOG_LIMIT = 50


@csrf_exempt
@require_POST
def subscribe(request):
    """Public signup endpoint used by the footer form."""
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        data = {}
    if not isinstance(data, dict):
        data = {}

    form = SubscribeForm({'email': data.get('email', '')})
    if not form.is_valid():
        return JsonResponse({'ok': False, 'error': 'Invalid email'}, status=400)

    subscribe_email(form.cleaned_data['email'])
    return JsonResponse({'ok': True})


@require_GET
def unsubscribe(request):
    token = request.GET.get('token', '').strip()
    if not token:
        return JsonResponse({'ok': False, 'error': 'Missing token'}, status=400)
    unsubscribe_token(token)
    return JsonResponse({'ok': True, 'message': 'Unsubscribed'})


@staff_required
@require_POST
def send(request):
    form = NewsletterSendForm(request.POST)
    if not form.is_valid():
        errors = form.non_field_errors() or [e for field in form.errors.values() for e in field]
        return JsonResponse({'ok': False, 'error': errors[0]}, status=400)

    result = send_newsletter(
        subject=form.cleaned_data['subject'],
        message=form.cleaned_data['message'],
        style=form.cleaned_data['style'] or NewsletterCampaign.Style.SIMPLE,
        content_json=form.cleaned_data['contentJson'],
        user=request.user,
    )
    return JsonResponse(result, status=200 if 'error' not in result else 400)


@staff_required
@require_GET
def campaign_detail(request, campaign_id):
    campaign = get_object_or_404(NewsletterCampaign, pk=campaign_id)
    logs = campaign.logs.order_by('-created_at')[:CAMPAIGN_LOG_LIMIT]
    return JsonResponse({
        'id': str(campaign.id),
        'subject': campaign.subject,
        'style': campaign.style,
        'status': campaign.status,
        'totalRecipients': campaign.total_recipients,
        'sentCount': campaign.sent_count,
        'failedCount': campaign.failed_count,
        'createdAt': campaign.created_at.isoformat(),
        'sentAt': campaign.sent_at.isoformat() if campaign.sent_at else None,
        'html': campaign.html,
        'logs': [
            {
                'email': log.email,
                'status': log.status,
                'providerId': log.provider_id,
                'error': log.error,
                'createdAt': log.created_at.isoformat(),
            }
            for log in logs
        ],
    })
