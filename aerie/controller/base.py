"""
Controller Base Class

Controllers are plain classes; subclassing Controller gives endpoint
methods ``self.request`` and ``self.response`` for the current request.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from aerie.request import Request
    from aerie.response import Response


class Controller:
    """
    Base class for controllers.

    The dispatch pipeline calls ``set_request`` and ``set_response`` on the
    instance returned by the controller factory before invoking the
    endpoint method. A factory that reuses instances across concurrent
    requests should not rely on these attributes.
    """

    request: Optional["Request"] = None
    response: Optional["Response"] = None

    def set_request(self, request: "Request") -> None:
        self.request = request

    def set_response(self, response: "Response") -> None:
        self.response = response
