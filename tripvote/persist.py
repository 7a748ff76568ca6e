'''Serialization of tally configuration objects to JSON-ready dictionaries.

Validators, tie-breakers and tallies keep all their constructor parameters
as attributes, so the :func:`simple_serialization` decorator can give them a
``to_dict()`` method that records the class and those parameters. The
:func:`from_dict` function reverses this, which allows a tally setup to be
stored next to the trip it belongs to and reused for a recount.

Only objects defined within the ``tripvote`` package can be restored.
'''

import sys
import inspect
import importlib
from typing import Any, List, Dict


PACKAGE_NAME: str = __name__.split('.')[0]

ATOMIC_TYPES: List[type] = [
    str, int, float, bool, type(None),
]


def simple_serialization(class_: type) -> type:
    '''A decorator to provide a simple to_dict() serialization method.

    The resulting method serializes all object attributes named after the
    class's constructor parameters, or the attributes listed in the
    ``serialize_params`` class attribute if it is present.

    :param class_: The class to add the method to.
    '''
    if hasattr(class_, 'serialize_params'):
        param_names = list(class_.serialize_params)
    else:
        param_names = [
            name for name, param
            in inspect.signature(class_.__init__).parameters.items()
            if name != 'self' and param.kind not in (
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
            )
        ]

    def to_dict(self) -> Dict[str, Any]:
        out_dict = {'class': scoped_class_name(self)}
        for attr in param_names:
            out_dict[attr] = serialize_value(getattr(self, attr))
        return out_dict

    class_.to_dict = to_dict
    return class_


def serialize_value(value: Any) -> Any:
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    elif isinstance(value, tuple(ATOMIC_TYPES)):
        return value
    elif hasattr(value, 'items') and hasattr(value, 'keys'):
        if all(isinstance(key, str) for key in value.keys()):
            return {key: serialize_value(val) for key, val in value.items()}
        else:
            raise ValueError(f'cannot serialize non-string keys of {value!r}')
    elif isinstance(value, (list, tuple, frozenset, set)):
        return [serialize_value(val) for val in value]
    else:
        raise ValueError(f'cannot serialize {value!r} to dict format')


def deserialize_value(value: Any) -> Any:
    if isinstance(value, dict):
        if 'class' in value and is_scoped_identifier(value['class']):
            return deserialize_class(value)
        else:
            return {key: deserialize_value(val) for key, val in value.items()}
    elif isinstance(value, tuple(ATOMIC_TYPES)):
        return value
    elif isinstance(value, list):
        return [deserialize_value(val) for val in value]
    else:
        raise ValueError(f'cannot deserialize {value!r}, type unknown')


def deserialize_class(clsdef: Dict[str, Any]) -> Any:
    cls = get_object(clsdef['class'])
    params = {
        key: deserialize_value(val)
        for key, val in clsdef.items() if key != 'class'
    }
    return cls(**params)


def get_object(identifier: str) -> Any:
    module, name = identifier.rsplit('.', 1)
    if module != PACKAGE_NAME and not module.startswith(PACKAGE_NAME + '.'):
        raise ValueError(f'refusing to load {identifier}: not a {PACKAGE_NAME}'
                         ' object')
    if module not in sys.modules:
        importlib.import_module(module)
    try:
        return getattr(sys.modules[module], name)
    except AttributeError as e:
        raise ValueError(f'unknown {PACKAGE_NAME} object: {identifier}') from e


def from_dict(value: Dict[str, Any]) -> Any:
    '''Restore a configuration object from a JSON-like dictionary.

    :param value: A dictionary created by :func:`to_dict`.
    '''
    if not isinstance(value, dict):
        raise ValueError(f'invalid {PACKAGE_NAME} object def: dict expected,'
                         f' got {value!r}')
    elif 'class' not in value:
        raise ValueError(f'invalid {PACKAGE_NAME} object def:'
                         ' must have a class key')
    elif not is_scoped_identifier(value['class']):
        inval_cls = value['class']
        raise ValueError(f'invalid {PACKAGE_NAME} class def: {inval_cls}')
    else:
        return deserialize_value(value)


def to_dict(obj: Any) -> Dict[str, Any]:
    '''Serialize a configuration object to a JSON-ready dictionary.

    :param obj: A validator, tie-breaker, tally or similar object providing
        a ``to_dict()`` method (courtesy of :func:`simple_serialization`).
    '''
    return serialize_value(obj)


def is_scoped_identifier(value: Any) -> bool:
    return (
        isinstance(value, str)
        and '.' in value
        and not value.startswith('.')
        and all(chunk.isidentifier() for chunk in value.split('.'))
    )


def scoped_class_name(value: Any) -> str:
    cls = value.__class__
    return '.'.join((cls.__module__, cls.__name__))
