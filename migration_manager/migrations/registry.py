"""
Migration registry.

Migration units register themselves under their identifier
(``YYYY-MM-DD_HHmm_<Name>``). A unit is anything that builds an object with
an ``apply(connection)`` method: usually a class, or a plain function wrapped
by the ``migration`` decorator.

Example:
    registry = MigrationRegistry()

    @registry.migration("2024-01-01_0000_CreateUsers")
    class CreateUsers:
        def apply(self, connection):
            connection.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY)"))
"""

import importlib.util
import inspect
from pathlib import Path
from typing import Any, Callable, Dict, List, Protocol, Union, runtime_checkable

from sqlalchemy.engine import Connection

from ..config.logging_config import get_logger
from ..exceptions import MigrationIntegrityError, UnexpectedValueError
from ..models import MIGRATION_SUFFIX, migration_name, parse_migration_name


@runtime_checkable
class Migration(Protocol):
    """A migration unit: one forward-only change."""

    def apply(self, connection: Connection) -> None:
        ...


class FunctionMigration:
    """Adapts a plain ``apply(connection)`` function to the Migration protocol."""

    def __init__(self, func: Callable[[Connection], None]):
        self.func = func

    def apply(self, connection: Connection) -> None:
        self.func(connection)

    def __repr__(self) -> str:
        return f"FunctionMigration({self.func.__name__})"


def as_factory(unit: Any) -> Callable[[], Any]:
    """Return a zero-argument callable building a migration instance."""
    if inspect.isclass(unit):
        return unit
    if callable(unit) and not hasattr(unit, 'apply'):
        return lambda: FunctionMigration(unit)
    # An already built instance is reused for every run
    return lambda: unit


def accepts(func: Callable, *args) -> bool:
    """Whether ``func`` can be called with ``args``. Uninspectable callables pass."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    try:
        signature.bind(*args)
    except TypeError:
        return False
    return True


class MigrationRegistry:
    """Static table of migration units keyed by ledger name."""

    def __init__(self):
        self._units: Dict[str, Any] = {}
        self.logger = get_logger(self.__class__.__name__)

    def register(self, identifier: str, unit: Any) -> str:
        """
        Register a migration unit

        Args:
            identifier: ``YYYY-MM-DD_HHmm_<Name>`` with or without the file suffix
            unit: Class, function or instance providing ``apply(connection)``

        Returns:
            The ledger name the unit is registered under

        Raises:
            MigrationIntegrityError: If the identifier is already registered
        """
        name = migration_name(identifier)
        if name in self._units:
            raise MigrationIntegrityError(f"Duplicate migration identifier: {name}")
        self._units[name] = unit
        self.logger.debug(f"Registered migration {name}")
        return name

    def migration(self, identifier: str) -> Callable[[Any], Any]:
        """Decorator form of ``register``."""
        def decorator(unit):
            self.register(identifier, unit)
            return unit
        return decorator

    def names(self) -> List[str]:
        """Registered ledger names in registration order."""
        return list(self._units)

    def resolve(self, name: str) -> Callable[[], Any]:
        """
        Find the factory for a migration and check it can be applied

        Raises:
            MigrationIntegrityError: If the unit is missing, cannot be built without arguments,
                or has no ``apply`` taking a connection
        """
        unit_name, _ = parse_migration_name(name)
        unit = self._units.get(name)
        if unit is None:
            raise MigrationIntegrityError(f"Migration class not found: {unit_name} (file: {name})")

        if inspect.isclass(unit) or hasattr(unit, 'apply'):
            if not callable(getattr(unit, 'apply', None)):
                raise MigrationIntegrityError(
                    f"Migration class not found: {unit_name} has no apply() (file: {name})"
                )
            if inspect.isclass(unit) and not accepts(unit):
                raise MigrationIntegrityError(
                    f"Migration class not found: {unit_name} is not constructible "
                    f"without arguments (file: {name})"
                )
            if not inspect.isclass(unit) and not accepts(unit.apply, None):
                raise MigrationIntegrityError(
                    f"Migration class not found: {unit_name}.apply() does not take "
                    f"a connection (file: {name})"
                )
        elif not callable(unit):
            raise MigrationIntegrityError(
                f"Migration class not found: {unit_name} is not callable (file: {name})"
            )
        elif not accepts(unit, None):
            raise MigrationIntegrityError(
                f"Migration class not found: {unit_name} does not take a connection (file: {name})"
            )

        return as_factory(unit)

    def instantiate(self, name: str) -> Migration:
        """Build a fresh migration instance for one run."""
        return self.resolve(name)()

    def __contains__(self, name: str) -> bool:
        return migration_name(name) in self._units

    def __len__(self) -> int:
        return len(self._units)


def load_directory(path: Union[str, Path], registry: MigrationRegistry = None) -> MigrationRegistry:
    """
    Build a registry from a directory of migration files

    Every ``*.py`` file not starting with an underscore is a migration. Its
    name must follow ``YYYY-MM-DD_HHmm_<Name>.py`` and the module must define
    an attribute called ``<Name>``.

    Args:
        path: Directory holding migration files
        registry: Registry to add to, a new one by default

    Returns:
        Registry holding every migration found

    Raises:
        UnexpectedValueError: If the path is not a readable directory or a file
            fails to import
        MigrationIntegrityError: If a file is misnamed or lacks its unit
    """
    registry = registry if registry is not None else MigrationRegistry()
    directory = Path(path)

    try:
        files = sorted(
            p for p in directory.iterdir()
            if p.is_file() and p.suffix == MIGRATION_SUFFIX and not p.name.startswith('_')
        )
    except OSError as e:
        raise UnexpectedValueError(f"Failed to open migrations directory {directory}: {e}") from e

    for file_path in files:
        unit_name, _ = parse_migration_name(file_path.name)

        module_spec = importlib.util.spec_from_file_location(
            f"_migrations_{file_path.stem.replace('-', '_')}", file_path
        )
        if module_spec is None or module_spec.loader is None:
            raise UnexpectedValueError(f"Failed to load migration file: {file_path}")
        module = importlib.util.module_from_spec(module_spec)
        try:
            module_spec.loader.exec_module(module)
        except (SyntaxError, ImportError) as e:
            raise UnexpectedValueError(f"Failed to load migration file {file_path.name}: {e}") from e

        unit = getattr(module, unit_name, None)
        if unit is None:
            raise MigrationIntegrityError(
                f"Migration class not found: {unit_name} (file: {file_path.name})"
            )
        registry.register(file_path.name, unit)

    registry.logger.debug(f"Loaded {len(files)} migration files from {directory}")
    return registry
