class FiggieClientError(Exception):
    pass


class EventParseError(FiggieClientError):
    """Inbound payload could not be read as a server event."""


class ActionValidationError(FiggieClientError):
    """Outbound field does not fit the protocol's numeric type."""


class ChannelClosedError(FiggieClientError):
    """Send attempted while the channel is not open."""


class MissingSessionError(FiggieClientError):
    """No usable bootstrap payload; the session cannot be entered."""


class BootstrapError(FiggieClientError):
    pass


class SessionAlreadyActiveError(FiggieClientError):
    pass
