"""Wire-shaped domain records exchanged with the user service."""

from __future__ import annotations

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field


class IdentityProviderKind(str, Enum):
    """Identity provider families with provider-specific login behavior."""

    OKTA = "okta"
    MS_ENTRA = "ms_entra"
    OTHER = "other"


class UserStatus(IntEnum):
    """User account status as stored by the user service."""

    PWD_CHANGE = 0
    SUSPENDED = 1
    TERMINATED = 2
    ACTIVE = 3


class UserRole(str, Enum):
    """User role within its organization."""

    OWNER = "OWNER"
    MEMBER = "MEMBER"


class _WireModel(BaseModel):
    """Base for camelCase records: accepts either alias or field name."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AttributeKeyMapping(_WireModel):
    """Canonical user field -> IdP claim name."""

    email: str = ""
    first_name: str = ""
    last_name: str = ""

    def is_empty(self) -> bool:
        """True when no canonical field has a claim name."""
        return not (self.email or self.first_name or self.last_name)


class SAMLConfigMetadata(_WireModel):
    """Assertion metadata settings."""

    name_id_format: str = Field(default="", alias="nameIdFormat")
    attributes: AttributeKeyMapping | None = None


class SAMLConfig(_WireModel):
    """A tenant's trust configuration for its identity provider."""

    identity_provider_kind: IdentityProviderKind = Field(
        default=IdentityProviderKind.OTHER, alias="idP"
    )
    entry_point: str = Field(alias="entryPoint")
    issuer: str = ""
    entity_id: str = Field(alias="entityId")
    certificate: str
    callback_url: str = Field(alias="callbackURL")
    logout_url: str | None = Field(default=None, alias="logoutURL")
    is_active: bool = Field(default=True, alias="isActive")
    metadata: SAMLConfigMetadata = Field(default_factory=SAMLConfigMetadata)

    @property
    def attribute_mapping(self) -> AttributeKeyMapping | None:
        """The attribute key mapping, if one is configured."""
        return self.metadata.attributes


class OrganizationPreference(_WireModel):
    """Tenant display preferences."""

    timezone: str | None = None


class Organization(_WireModel):
    """A tenant organization."""

    id: str = ""
    name: str = ""
    domain: str | None = None
    sso_enabled: bool = Field(default=False, alias="ssoEnabled")
    scim_token: str | None = Field(default=None, alias="scimToken")
    saml_config: SAMLConfig | None = Field(default=None, alias="samlConfig")
    preferences: OrganizationPreference | None = None


class AccountInfo(_WireModel):
    """Organization record together with its owner's user id."""

    owner: str | None = None
    organization: Organization | None = None


class UserCustomInfo(_WireModel):
    """Free-form user attributes kept by the user service."""

    external_id: str | None = Field(default=None, alias="externalId")


class User(_WireModel):
    """A user record. ``email`` doubles as ``userid``."""

    userid: str
    email: str
    first_name: str = ""
    last_name: str = ""
    status: UserStatus = UserStatus.ACTIVE
    user_role: UserRole = UserRole.MEMBER
    apikey: str | None = None
    user_account: str | None = None
    custom_info: UserCustomInfo | None = None

    @property
    def is_active(self) -> bool:
        """True when the account is in the ACTIVE state."""
        return self.status == UserStatus.ACTIVE


class UserAttributes(BaseModel):
    """Identity extracted from an assertion."""

    email: str
    first_name: str
    last_name: str
