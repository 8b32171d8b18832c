"""SAML library binding.

``fedgate.adapters.saml.onelogin`` is imported on demand because it needs
the optional ``saml`` extra.
"""
