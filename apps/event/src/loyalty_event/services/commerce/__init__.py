"""Commerce platform client exports."""

from .auth import (  # noqa: F401
    AccessToken,
    CachedTokenProvider,
    ClientCredentialsTokenSource,
    TokenSource,
)
from .client import CommercePlatform, HttpCommerceClient  # noqa: F401
from .errors import (  # noqa: F401
    CommerceAuthError,
    CommerceError,
    ResourceNotFoundError,
    VersionConflictError,
)
