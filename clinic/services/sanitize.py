import bleach


def plain_text(value, max_length=None) -> str:
    """Strip every HTML tag from free-text input such as reasons and complaints."""
    text = bleach.clean(str(value or '').strip(), tags=set(), attributes={}, strip=True)
    return text[:max_length] if max_length else text
