# dept_helpdesk/backend/app/lifecycle/errors.py


class TicketError(Exception):
    """Base for errors surfaced synchronously by the ticket engine."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(TicketError):
    status_code = 404


class Forbidden(TicketError):
    status_code = 403


class InvalidReference(TicketError):
    status_code = 400


class MissingField(TicketError):
    status_code = 400


class NoChanges(TicketError):
    status_code = 400
