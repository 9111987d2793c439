import json

from django import forms

from apps.newsletter.models import NewsletterCampaign


class SubscribeForm(forms.Form):
    email = forms.EmailField(max_length=254)

    def clean_email(self):
        return self.cleaned_data['email'].strip().lower()


class NewsletterSendForm(forms.Form):
    subject = forms.CharField(max_length=200, required=False)
    message = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 10}))
    contentJson = forms.CharField(required=False, widget=forms.HiddenInput)
    style = forms.ChoiceField(
        choices=NewsletterCampaign.Style.choices,
        required=False,
        initial=NewsletterCampaign.Style.SIMPLE,
    )

    def clean_contentJson(self):
        raw = self.cleaned_data.get('contentJson', '').strip()
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            raise forms.ValidationError('Invalid content JSON.')

    def clean(self):
        cleaned = super().clean()
        subject = cleaned.get('subject', '').strip()
        message = cleaned.get('message', '').strip()
        if not subject or not (message or cleaned.get('contentJson')):
            raise forms.ValidationError('Missing subject or message.')
        return cleaned
