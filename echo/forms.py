"""
Echo - Forms

Parse and type-check request input. Length bounds and lifecycle rules
are enforced by the services so every caller gets the same error codes.
"""

from django import forms


class QuietNoteForm(forms.Form):
    """Send a quiet echo to another user."""
    recipient_id = forms.IntegerField(min_value=1)
    text = forms.CharField(required=False, strip=False)


class ResponseInviteForm(forms.Form):
    """Respond to a received echo with an invitation."""
    message = forms.CharField(required=False, strip=False)


class LimitedMessageForm(forms.Form):
    text = forms.CharField(required=False, strip=False)


class RekindleForm(forms.Form):
    message = forms.CharField(required=False, strip=False)
