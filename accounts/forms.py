from django import forms
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError

from .models import Profile


class RegisterStartForm(forms.Form):
    first_name = forms.CharField(max_length=150)
    last_name = forms.CharField(max_length=150, required=False)
    email = forms.EmailField()
    phone = forms.CharField(max_length=15, required=False)
    password = forms.CharField(min_length=8, max_length=128)
    role = forms.ChoiceField(
        choices=[(Profile.ROLE_BUYER, "Buyer"), (Profile.ROLE_SELLER, "Seller")],
        required=False,
    )

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise ValidationError("An account with this email already exists.")
        return email

    def clean_phone(self):
        phone = self.cleaned_data.get("phone", "").strip()
        # Basic normalization: remove spaces
        return "".join(ch for ch in phone if ch.isdigit() or ch in ["+", "-"])

    def clean_role(self):
        return self.cleaned_data.get("role") or Profile.ROLE_BUYER


class RegisterVerifyForm(forms.Form):
    email = forms.EmailField()
    otp = forms.CharField(label="OTP", max_length=6)

    def clean_email(self):
        return self.cleaned_data["email"].strip().lower()


class ResendCodeForm(forms.Form):
    email = forms.EmailField()

    def clean_email(self):
        return self.cleaned_data["email"].strip().lower()
