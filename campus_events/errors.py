"""Error kinds raised by the store, auth and workflow layers.

Every error carries a user-facing ``message`` (shown verbatim as a notice)
and the HTTP status the JSON API answers with.
"""


class CampusEventsError(Exception):
    status_code = 500
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CampusEventsError):
    status_code = 404
    kind = "not_found"


class RoleNotFound(NotFound):
    kind = "role_not_found"


class ValidationRejected(CampusEventsError):
    status_code = 409
    kind = "validation_rejected"


class AmbiguousRole(ValidationRejected):
    kind = "ambiguous_role"


class Unauthenticated(CampusEventsError):
    status_code = 401
    kind = "unauthenticated"


class Forbidden(CampusEventsError):
    status_code = 403
    kind = "forbidden"


class NetworkOrServer(CampusEventsError):
    status_code = 502
    kind = "network_or_server"
