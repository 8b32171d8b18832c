"""Credential generation for provisioned accounts."""

import base64
import secrets

# Accounts created through SSO or SCIM never log in with this password.
PASSWORD_LENGTH = 12


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Generate a random password.

    Alphanumeric characters from a random base64 string, terminated with
    ``@`` so the user service's complexity rule is satisfied.

    Args:
        length: Total password length.

    Returns:
        Password string of at most ``length`` characters.
    """
    raw = base64.b64encode(secrets.token_bytes(length * 2)).decode("ascii")
    alnum = "".join(ch for ch in raw if ch.isalnum())
    return alnum[: length - 1] + "@"
