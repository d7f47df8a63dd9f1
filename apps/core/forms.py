# apps/core/forms.py

from django import forms
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError

from .exceptions import BadRequest

User = get_user_model()


def validated(form):
    """Returns cleaned_data or raises BadRequest with the field errors"""
    if not form.is_valid():
        errors = {field: [str(e) for e in errs] for field, errs in form.errors.items()}
        first = next(iter(errors.values()))[0] if errors else 'Invalid data'
        raise BadRequest(first, errors=errors)
    return form.cleaned_data


class TokenForm(forms.Form):
    """Credentials exchanged for a bearer token"""

    username = forms.CharField(label='Username or email', max_length=254)
    password = forms.CharField(label='Password', strip=False)


class SignupForm(forms.ModelForm):
    """New account"""

    password = forms.CharField(label='Password', min_length=8, strip=False)
    confirm_password = forms.CharField(label='Confirm password', strip=False)

    class Meta:
        model = User
        fields = ['username', 'email', 'first_name', 'last_name']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['email'].required = True
        self.fields['first_name'].required = True

    def clean_email(self):
        email = self.cleaned_data.get('email')
        if User.objects.filter(email__iexact=email).exists():
            raise ValidationError('This email is already registered')
        return email

    def clean_username(self):
        username = self.cleaned_data.get('username')
        if len(username) < 3:
            raise ValidationError('Username must be at least 3 characters')
        return username

    def clean_confirm_password(self):
        password = self.cleaned_data.get('password')
        confirm_password = self.cleaned_data.get('confirm_password')

        if password and confirm_password and password != confirm_password:
            raise ValidationError('Passwords do not match')

        return confirm_password

    def clean(self):
        cleaned_data = super().clean()
        password = cleaned_data.get('password')
        if password:
            candidate = User(
                username=cleaned_data.get('username', ''),
                email=cleaned_data.get('email', ''),
                first_name=cleaned_data.get('first_name', ''),
            )
            try:
                validate_password(password, candidate)
            except ValidationError as e:
                self.add_error('password', e)
        return cleaned_data


class UserSearchForm(forms.Form):
    query = forms.CharField(max_length=200, required=False)
    board_id = forms.IntegerField(required=False)
    limit = forms.IntegerField(min_value=1, required=False)
