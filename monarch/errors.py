"""Error taxonomy for the verification bot."""


class MonarchError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(MonarchError):
    """A required setting is missing or invalid. Fatal at startup."""


class BindError(MonarchError):
    """A service could not acquire its listening address or transport session."""


class ServiceError(MonarchError):
    """A running service failed after a successful start."""


class ParseError(MonarchError):
    """A verification payload could not be turned into token bytes."""


class CryptoError(MonarchError):
    """A token failed authentication or did not hold a valid identity."""


class DispatchError(MonarchError):
    """The email provider did not accept a verification email."""


class GrantError(MonarchError):
    """Access could not be granted to an identity."""
