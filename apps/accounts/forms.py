from django import forms

from .models import CustomerProfile

NAME_MAX = CustomerProfile._meta.get_field('display_name').max_length
IMAGE_MAX = CustomerProfile._meta.get_field('image').max_length
PASSWORD_MIN = 6


def _is_image_reference(value):
    if value.startswith('http://') or value.startswith('https://'):
        return True
    return value.startswith('/') and not value.startswith('//')


class ProfileForm(forms.Form):
    """Partial profile update. Only keys present in the payload are touched."""
    name = forms.CharField(max_length=NAME_MAX, required=False, strip=True)
    image = forms.CharField(max_length=IMAGE_MAX, required=False, strip=True)

    def __init__(self, payload, *args, **kwargs):
        self.present = {k for k in ('name', 'image') if k in payload}
        data = {k: ('' if payload[k] is None else payload[k]) for k in self.present}
        super().__init__(data, *args, **kwargs)

    def clean_name(self):
        value = self.cleaned_data.get('name')
        if 'name' in self.present and not isinstance(self.data.get('name'), str):
            raise forms.ValidationError('Name must be a string.')
        return value

    def clean_image(self):
        value = self.cleaned_data.get('image', '')
        if not value:
            return ''
        if value.lower().startswith('data:'):
            raise forms.ValidationError('Upload the image first; data URLs are not accepted.')
        if not _is_image_reference(value):
            raise forms.ValidationError('Image must be an http(s) URL or a site path.')
        return value

    def apply(self, profile):
        fields = []
        if 'name' in self.present:
            profile.display_name = self.cleaned_data['name']
            fields.append('display_name')
        if 'image' in self.present:
            profile.image = self.cleaned_data['image']
            fields.append('image')
        if fields:
            profile.save(update_fields=fields + ['updated_at'])
        return profile


class PasswordChangeForm(forms.Form):
    currentPassword = forms.CharField(required=False, strip=False)
    newPassword = forms.CharField(required=False, strip=False)

    def __init__(self, user, *args, **kwargs):
        self.user = user
        super().__init__(*args, **kwargs)

    def clean_newPassword(self):
        value = self.cleaned_data.get('newPassword') or ''
        if len(value) < PASSWORD_MIN:
            raise forms.ValidationError(f'New password must be at least {PASSWORD_MIN} characters.')
        return value

    def clean(self):
        cleaned = super().clean()
        if not self.user.has_usable_password():
            raise forms.ValidationError('This account has no password set.')
        if not self.user.check_password(cleaned.get('currentPassword') or ''):
            raise forms.ValidationError('Current password is incorrect')
        return cleaned

    def save(self):
        self.user.set_password(self.cleaned_data['newPassword'])
        self.user.save(update_fields=['password'])
        return self.user
