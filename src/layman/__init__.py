from collections import (
    ChainMap,
)
from collections.abc import (
    Mapping,
)
import logging
import os
from pathlib import (
    Path,
)

log = logging.getLogger(__name__)


class Config:
    """
    Process-wide settings, read from environment variables. Settings that are
    specific to a service are read from the service descriptor instead, see
    :class:`layman.options.LayerConfig`.
    """

    @property
    def _defaults(self) -> Mapping[str, str]:
        return {
            'LAYMAN_DEBUG': '0',
            'LAYMAN_PROJECT_ROOT': os.getcwd(),
            'LAYMAN_NODE': 'node'
        }

    @property
    def environ(self):
        return ChainMap(os.environ, self._defaults)

    @property
    def debug(self) -> int:
        debug = self.environ['LAYMAN_DEBUG']
        require(debug in ('0', '1', '2'),
                'LAYMAN_DEBUG must be either 0, 1 or 2', debug)
        return int(debug)

    @debug.setter
    def debug(self, debug: int):
        require(debug in (0, 1, 2), 'LAYMAN_DEBUG must be either 0, 1 or 2', debug)
        os.environ['LAYMAN_DEBUG'] = str(debug)

    @property
    def project_root(self) -> Path:
        return Path(self.environ['LAYMAN_PROJECT_ROOT'])

    @property
    def node(self) -> str:
        return self.environ['LAYMAN_NODE']


config = Config()


class RequirementError(RuntimeError):
    """
    Unlike assertions, unsatisfied requirements do not constitute a bug in the
    program.
    """


def require(condition: bool, *args, exception: type = RequirementError):
    """
    Raise a RequirementError, or an instance of the given exception class, if
    the given condition is False.

    :param condition: The boolean condition to be required.

    :param args: optional positional arguments to be passed to the exception
                 constructor. Typically this should be a string containing a
                 textual description of the requirement, and optionally one or
                 more values involved in the required condition.

    :param exception: A custom exception class to be instantiated and raised if
                      the condition does not hold.

    >>> require(True, 'never raised')

    >>> require(1 > 2, 'One must exceed two', 1, 2)
    Traceback (most recent call last):
    ...
    layman.RequirementError: ('One must exceed two', 1, 2)
    """
    reject(not condition, *args, exception=exception)


def reject(condition: bool, *args, exception: type = RequirementError):
    """
    Raise a RequirementError, or an instance of the given exception class, if
    the given condition is True.

    >>> reject(False, 'never raised')

    >>> reject(True, 'Always', exception=ValueError)
    Traceback (most recent call last):
    ...
    ValueError: Always
    """
    if condition:
        raise exception(*args)
