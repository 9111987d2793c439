from django import forms

from .models import Order

FULL_NAME_MAX = Order._meta.get_field('full_name').max_length


class CheckoutForm(forms.Form):
    email = forms.EmailField(error_messages={
        'required': 'Please enter your email.',
        'invalid': 'Please enter a valid email.',
    })
    full_name = forms.CharField(max_length=FULL_NAME_MAX, required=False, strip=True)
