"""
Metadata Registry - store of controller and endpoint descriptors.

The registry is an explicit object rather than module state: the app
builds one, loads controllers into it, freezes it, and hands the same
instance to the route binder, the dispatch pipeline and the OpenAPI
generator.

Declarations are recorded by decorators on the class and its functions
and replayed here by ``register(cls)``. Every operation is idempotent:
replaying the same class yields the same descriptor instances.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..faults import (
    ControllerIdentityFault,
    MethodLookupFault,
    RegistrationFault,
    RegistryFrozenFault,
)
from .metadata import ControllerInfo, EndpointInfo


logger = logging.getLogger("aerie.controller.registry")

CONTROLLER_MARKER = "__aerie_controller__"
CLASS_DECLARATIONS = "__aerie_class_declarations__"
METHOD_DECLARATIONS = "__aerie_declarations__"


def method_arguments(func: Callable[..., Any]) -> List[str]:
    """Names of the declared parameters of ``func``, excluding ``self``."""
    params = [
        p for p in inspect.signature(func).parameters.values()
        if p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    return [p.name for p in params[1:]]


class MetadataRegistry:
    """
    Controller and endpoint descriptors keyed by identity.

    Controllers are keyed by identity (the class name unless declared
    otherwise); endpoints by ``"<controller identity>::<method name>"``.
    Nothing is ever removed.
    """

    def __init__(self):
        self.controllers: Dict[str, ControllerInfo] = {}
        self.endpoints: Dict[str, EndpointInfo] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Refuse further declarations."""
        self._frozen = True
        logger.debug(
            "Registry frozen with %d controllers, %d endpoints",
            len(self.controllers), len(self.endpoints),
        )

    def _check_open(self, target: str) -> None:
        if self._frozen:
            raise RegistryFrozenFault(target)

    # ------------------------------------------------------------------
    # Descriptors
    # ------------------------------------------------------------------

    def get_or_create_controller(self, identity: str, cls: Optional[type] = None) -> ControllerInfo:
        """Fetch the descriptor for ``identity``, creating it on first use."""
        controller = self.controllers.get(identity)

        if controller is None:
            self._check_open(identity)
            controller = ControllerInfo(identity=identity, cls=cls)
            self.controllers[identity] = controller
            logger.debug("Created controller descriptor %s", identity)
        elif cls is not None:
            if controller.cls is None:
                controller.cls = cls
            elif controller.cls is not cls:
                raise ControllerIdentityFault(identity, controller.cls, cls)

        return controller

    def get_or_create_endpoint(self, controller: ControllerInfo, method_name: str) -> EndpointInfo:
        """
        Fetch the descriptor for ``controller::method_name``.

        On creation the method is resolved on the controller class and its
        parameter extractor slots are sized to the method's arity.

        Raises:
            MethodLookupFault: the method does not exist on the class
        """
        key = f"{controller.identity}::{method_name}"
        endpoint = self.endpoints.get(key)
        if endpoint is not None:
            return endpoint

        self._check_open(key)

        function = getattr(controller.cls, method_name, None) if controller.cls else None
        if function is None or not callable(function):
            raise MethodLookupFault(controller.identity, method_name)

        endpoint = EndpointInfo(
            controller=controller,
            method_name=method_name,
            function=function,
            parameter_extractors=[None] * len(method_arguments(function)),
        )
        self.endpoints[key] = endpoint
        controller.endpoints[method_name] = endpoint
        logger.debug("Created endpoint descriptor %s", key)
        return endpoint

    # ------------------------------------------------------------------
    # Declaration replay
    # ------------------------------------------------------------------

    def register(self, cls: type) -> ControllerInfo:
        """
        Apply the declarations recorded on ``cls`` and its methods.

        Raises:
            RegistrationFault: ``cls`` is not decorated with ``@controller``
        """
        marker = cls.__dict__.get(CONTROLLER_MARKER)
        if marker is None:
            raise RegistrationFault(
                f"{cls.__qualname__} is not a controller, decorate it with @controller",
                code="NOT_A_CONTROLLER",
            )

        self._check_open(marker.identity or cls.__name__)
        controller = self.get_or_create_controller(marker.identity or cls.__name__, cls)
        controller.path = marker.path

        for declare in cls.__dict__.get(CLASS_DECLARATIONS, ()):
            declare(controller)

        for name, function in self._declared_methods(cls):
            endpoint = self.get_or_create_endpoint(controller, name)
            for declare in getattr(function, METHOD_DECLARATIONS):
                declare(endpoint)

        logger.info(
            "Registered controller %s at '%s' with %d endpoints",
            controller.identity, controller.path, len(controller.endpoints),
        )
        return controller

    @staticmethod
    def _declared_methods(cls: type) -> Iterator[tuple[str, Callable[..., Any]]]:
        seen: Dict[str, Callable[..., Any]] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in klass.__dict__.items():
                if callable(attr) and hasattr(attr, METHOD_DECLARATIONS):
                    seen[name] = attr
                elif name in seen:
                    del seen[name]
        return iter(list(seen.items()))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def controller_for(self, cls: type) -> Optional[ControllerInfo]:
        for controller in self.controllers.values():
            if controller.cls is cls:
                return controller
        return None

    def __len__(self) -> int:
        return len(self.endpoints)

    def __repr__(self) -> str:
        return (
            f"MetadataRegistry(controllers={len(self.controllers)}, "
            f"endpoints={len(self.endpoints)}, frozen={self._frozen})"
        )
