"""Method catalogs: naming a daemon's operations once, calling them anywhere.

A catalog maps an operation name to the wire method, the parameter style
the daemon expects for it, and the shape its result is decoded into. The
client itself knows nothing about any particular daemon; applications
describe theirs with a catalog (see lightningrpc.lightning).

Example:
    catalog = MethodCatalog([
        MethodSpec("get_info", "getinfo", result_shape=GetInfoResponse),
        MethodSpec(
            "close", "close", ParamStyle.POSITIONAL, arg_names=("peer_id",)
        ),
    ])
    info = await catalog.invoke(client, "get_info")
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lightningrpc.wire import Named, Params, ParamStyle, Positional

if TYPE_CHECKING:
    from lightningrpc.client import Client


@dataclass(frozen=True)
class MethodSpec:
    """How to call one daemon operation."""

    name: str
    wire_method: str
    param_style: ParamStyle = ParamStyle.NAMED
    result_shape: Any = None
    arg_names: tuple[str, ...] = ()

    def _bind(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        if len(args) > len(self.arg_names):
            msg = f"{self.name}() takes {len(self.arg_names)} positional argument(s) but {len(args)} were given"
            raise TypeError(msg)

        bound = dict(zip(self.arg_names, args, strict=False))
        for key, value in kwargs.items():
            if key in bound:
                msg = f"{self.name}() got multiple values for argument '{key}'"
                raise TypeError(msg)
            if self.arg_names and key not in self.arg_names:
                msg = f"{self.name}() got an unexpected keyword argument '{key}'"
                raise TypeError(msg)
            bound[key] = value
        return bound

    def build_params(self, *args: Any, **kwargs: Any) -> Params:
        """Bind call arguments to this method's parameter style.

        Positional methods send arguments in ``arg_names`` order; trailing
        arguments that were not given are left off. Named methods send a
        mapping.

        Raises:
            TypeError: If the arguments do not fit ``arg_names``
        """
        bound = self._bind(args, kwargs)
        if self.param_style is ParamStyle.NAMED:
            return Named(bound)

        if not self.arg_names and kwargs:
            msg = f"{self.name}() takes no keyword arguments"
            raise TypeError(msg)
        given = [i for i, name in enumerate(self.arg_names) if name in bound]
        last = given[-1] + 1 if given else 0
        return Positional(tuple(bound.get(name) for name in self.arg_names[:last]))


class MethodCatalog(Mapping[str, MethodSpec]):
    """Operation name -> MethodSpec."""

    def __init__(self, specs: Iterable[MethodSpec] = ()) -> None:
        self._specs: dict[str, MethodSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: MethodSpec) -> MethodSpec:
        """Add a method to the catalog.

        Raises:
            ValueError: If an operation with the same name is already registered
        """
        if spec.name in self._specs:
            msg = f"Operation {spec.name} is already registered"
            raise ValueError(msg)
        self._specs[spec.name] = spec
        return spec

    def __getitem__(self, name: str) -> MethodSpec:
        try:
            return self._specs[name]
        except KeyError:
            msg = f"Unknown operation: {name}"
            raise KeyError(msg) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

    async def invoke(self, client: Client, name: str, *args: Any, **kwargs: Any) -> Any:
        """Call an operation through a client.

        Raises:
            KeyError: If the operation is not in the catalog
            TypeError: If the arguments do not fit the operation
        """
        spec = self[name]
        params = spec.build_params(*args, **kwargs)
        return await client.call(spec.wire_method, params, spec.result_shape)
