import os
from typing import Callable, Dict, Mapping, TypeVar, Union

from dotenv import dotenv_values

from .env import Env

T = TypeVar("T", bound=Env)

PrimaryType = Union[str, int, bool, float, bytes]


def _coerce(
    source: Mapping[str, str | None],
    envars: Dict[str, Callable[[str], PrimaryType]],
) -> Dict[str, PrimaryType]:
    return {
        name: envars[name](value)
        for name, value in source.items()
        if name in envars and value
    }


def load_env(
    default: type[T] = Env,
    env_file: str | None = ".env",
    override: T | None = None,
) -> T:
    """
    Build an Env from the process environment and an optional .env file.

    Values from the file win over the process environment, and every
    field set on `override` wins over both. Unknown keys are ignored.
    """
    envars = default.types_map()

    values = _coerce(os.environ, envars)

    if env_file and os.path.exists(env_file):
        values.update(_coerce(dotenv_values(dotenv_path=env_file), envars))

    model = default
    if override is not None:
        values.update(override.model_dump(exclude_unset=True, exclude_none=True))
        model = type(override)

    return model(**values)
