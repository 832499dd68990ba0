"""Entities of the HMC web (session and error) API."""

from .base import Attribute, EmbeddedEntity, FreestandingEntity


class HttpErrorResponse(FreestandingEntity):
    """Error response returned by the HMC along with an HTTP error status."""

    status = Attribute("HTTPStatus", int)
    uri = Attribute("RequestURI")
    reason = Attribute("ReasonCode")
    message = Attribute("Message")


class LogonRequest(EmbeddedEntity):
    """Credentials sent to open an API session."""

    user_id = Attribute("UserID")
    password = Attribute("Password")


class LogonResponse(EmbeddedEntity):
    """Answer to a successful logon, carrying the session token."""

    token = Attribute("X-API-Session")
