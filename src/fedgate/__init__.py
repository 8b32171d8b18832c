"""fedgate - SAML login and SCIM provisioning gateway for tenant organizations."""

__version__ = "0.1.0"
