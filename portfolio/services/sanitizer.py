"""Input sanitization for values that end up in outgoing email."""

from __future__ import annotations

import html

from portfolio.models import ContactFormData


def sanitize(text: str) -> str:
    """Strip surrounding whitespace and escape HTML special characters."""
    return html.escape(text.strip(), quote=True)


def sanitize_form_data(data: ContactFormData) -> ContactFormData:
    return data.model_copy(
        update={
            "first_name": sanitize(data.first_name),
            "last_name": sanitize(data.last_name),
            "email": sanitize(data.email),
            "message": sanitize(data.message),
        }
    )
