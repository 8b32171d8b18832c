"""python3-saml binding for assertion verification.

Requires the ``saml`` extra (``python3-saml``, which pulls in ``xmlsec``).
"""

from __future__ import annotations

import binascii

import structlog
from lxml import etree
from onelogin.saml2.auth import OneLogin_Saml2_Auth
from onelogin.saml2.errors import OneLogin_Saml2_Error, OneLogin_Saml2_ValidationError

from fedgate.core.errors import ErrorKind, Failure
from fedgate.core.interfaces import RawAttributes
from fedgate.core.sso.descriptors import acs_request_data, check_certificate, saml_settings
from fedgate.core.types import SAMLConfig

logger = structlog.get_logger()


class OneLoginAssertionValidator:
    """Verifies SAML responses with OneLogin's toolkit.

    Signature, audience, destination and validity window are checked by the
    toolkit; with ``strict`` off only the signature is enforced.
    """

    def __init__(self, app_url: str, strict: bool = True) -> None:
        """Initialize the validator.

        Args:
            app_url: Public base URL of this system (SP entity id root).
            strict: Enforce destination, audience and timing checks.
        """
        self._app_url = app_url
        self._strict = strict

    def validate(self, saml_response: str, config: SAMLConfig) -> RawAttributes | Failure:
        """Verify a base64 SAML response and return its attributes.

        Args:
            saml_response: The ``SAMLResponse`` form value.
            config: The tenant's SAML configuration.

        Returns:
            Attribute name -> list of values, or ``Failure(ASSERTION_INVALID)``.
        """
        bad_cert = check_certificate(config.certificate)
        if bad_cert is not None:
            return bad_cert

        request = acs_request_data(config.callback_url, saml_response)
        settings = saml_settings(self._app_url, config, strict=self._strict)
        try:
            auth = OneLogin_Saml2_Auth(request, old_settings=settings)
            auth.process_response()
        except (
            OneLogin_Saml2_Error,
            OneLogin_Saml2_ValidationError,
            binascii.Error,
            etree.XMLSyntaxError,
        ) as e:
            logger.warning("saml_response_unprocessable", error=str(e))
            return Failure(
                ErrorKind.ASSERTION_INVALID, "Invalid SAML response", {"error": str(e)}
            )

        errors = auth.get_errors()
        if errors or not auth.is_authenticated():
            reason = auth.get_last_error_reason()
            return Failure(
                ErrorKind.ASSERTION_INVALID,
                "Invalid SAML response",
                {"errors": list(errors), "reason": reason},
            )

        attributes: RawAttributes = dict(auth.get_attributes())
        logger.debug(
            "saml_response_verified", name_id=auth.get_nameid(), attributes=sorted(attributes)
        )
        return attributes
