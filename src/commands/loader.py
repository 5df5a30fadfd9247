"""Load command definition modules from a folder into a validated command tree.

Layout of a commands folder (folders-as-groups mode):

    commands/
        ping.py             -> /ping
        admin/              -> /admin (CommandGroup)
            _info.py        -> optional: description, permissions
            kick.py         -> /admin kick
            roles/          -> /admin roles (SubcommandGroup)
                _info.py
                add.py      -> /admin roles add
        _guild/             -> per-guild commands (see load_guild_commands)
        _debug/             -> only loaded in debug mode
        _anything           -> ignored

With folders-as-groups off, sub-folders are walked and their files become
ordinary top-level commands.

A definition module either exposes a ``command`` mapping or module-level
attributes: ``description``, ``kind`` (or ``type``), ``options``, ``run``,
``autocomplete``, ``default_member_permissions``, ``dm_permission``,
``nsfw`` and, for guild commands, ``should_create_for`` and ``get_options``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union
import hashlib
import importlib.util
import logging
import os
import re
import sys

from .errors import LoadError
from .registry import CommandRegistry, ScopeRegistry
from .types import (
    CommandGroup,
    CommandKind,
    CommandNode,
    GuildCommand,
    Subcommand,
    SubcommandGroup,
    always_create,
    coerce_options,
)
from .validation import MIN_DESCRIPTION_LENGTH, validate_command

logger = logging.getLogger(__name__)

RESERVED_PREFIX = "_"
DEBUG_FOLDER = "_debug"
GUILD_FOLDER = "_guild"
INFO_FILE = "_info"

DEFINITION_KEYS = (
    "description",
    "kind",
    "type",
    "options",
    "run",
    "autocomplete",
    "default_member_permissions",
    "dm_permission",
    "nsfw",
    "should_create_for",
    "get_options",
)

Middleware = Callable[[CommandNode], Optional[CommandNode]]


@dataclass(frozen=True)
class SourceEntry:
    name: str
    path: Path
    is_dir: bool


@dataclass(frozen=True)
class ManifestEntry:
    """One load unit found under the commands root."""

    name: str
    subfolder: str
    path: Path
    is_group: bool


class CommandSource:
    """File-system access used by the builder: listing, existence, imports."""

    def __init__(self) -> None:
        self._modules: Dict[Path, ModuleType] = {}

    def list(self, path: Path) -> List[SourceEntry]:
        with os.scandir(path) as it:
            found = [SourceEntry(e.name, Path(e.path), e.is_dir()) for e in it]
        found.sort(key=lambda e: e.name)
        return found

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def import_module(self, path: Path, *, reload: bool = False) -> ModuleType:
        """Import a module from a file path, once unless `reload` is set."""
        path = path.resolve()
        if not reload and path in self._modules:
            return self._modules[path]
        digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
        stem = re.sub(r"\W", "_", path.stem)
        module_name = f"_commands_{stem}_{digest}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import command module from {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            sys.modules.pop(module_name, None)
            raise
        self._modules[path] = module
        return module


def read_definition(module: ModuleType) -> Dict[str, Any]:
    """Collect a command definition from a module.

    A module-level ``command`` mapping wins over loose attributes.
    """
    exported = getattr(module, "command", None)
    if isinstance(exported, Mapping):
        return dict(exported)
    return {key: getattr(module, key) for key in DEFINITION_KEYS if hasattr(module, key)}


def _coerce_kind(name: str, raw: Any) -> Any:
    if isinstance(raw, CommandKind):
        return raw
    try:
        return CommandKind(raw)
    except (ValueError, TypeError):
        raise LoadError(name, f"Unknown command kind: {raw!r}") from None


class CommandTreeBuilder:
    """Builds the command tree for one commands root.

    Args:
        root: Folder holding the command definition modules.
        registry: Registry to populate; a new one is created if omitted.
        source: File-system collaborator.
        folders_as_groups: Treat top-level folders as command groups.
        debug: Also load the `_debug` folder.
        middleware: Callables applied, in order, to each loaded command
            before validation. A stage returning None keeps its input.
        default_dm_permission: `dm_permission` for commands that don't set it.
        file_extensions: Suffixes of definition modules.
        special_folders: Folder names handled elsewhere (e.g. the owner folder).
    """

    def __init__(
        self,
        root: Union[str, Path],
        registry: Optional[CommandRegistry] = None,
        source: Optional[CommandSource] = None,
        *,
        folders_as_groups: bool = True,
        debug: bool = False,
        middleware: Union[Middleware, Sequence[Middleware], None] = None,
        default_dm_permission: bool = False,
        file_extensions: Iterable[str] = (".py",),
        special_folders: Iterable[str] = (),
    ) -> None:
        self.root = Path(root)
        self.registry = registry if registry is not None else CommandRegistry()
        self.source = source or CommandSource()
        self.folders_as_groups = folders_as_groups
        self.debug = debug
        if middleware is None:
            self.middleware: List[Middleware] = []
        elif callable(middleware):
            self.middleware = [middleware]
        else:
            self.middleware = list(middleware)
        if not all(callable(m) for m in self.middleware):
            raise TypeError("'middleware' must be a function or a list of functions")
        self.default_dm_permission = default_dm_permission
        self.file_extensions = tuple(file_extensions)
        self.special_folders = set(special_folders)

    # ----- discovery -----
    def _is_excluded(self, name: str) -> bool:
        if name in self.special_folders:
            return True
        if name.startswith(RESERVED_PREFIX):
            return not (self.debug and name == DEBUG_FOLDER)
        return False

    def _command_stem(self, filename: str) -> Optional[str]:
        for ext in self.file_extensions:
            if filename.endswith(ext) and len(filename) > len(ext):
                return filename[: -len(ext)]
        return None

    def _find_file(self, folder: Path, name: str) -> Optional[Path]:
        for ext in self.file_extensions:
            candidate = folder / f"{name}{ext}"
            if self.source.exists(candidate) and not self.source.is_dir(candidate):
                return candidate
        return None

    def _relative(self, path: Path) -> str:
        rel = path.relative_to(self.root)
        return "" if str(rel) == "." else rel.as_posix()

    def discover(self, folder: Optional[Path] = None) -> List[ManifestEntry]:
        """Walk the root and return every load unit, in a stable order."""
        folder = folder or self.root
        subfolder = self._relative(folder)
        found: List[ManifestEntry] = []
        for entry in self.source.list(folder):
            if self._is_excluded(entry.name):
                continue
            if entry.is_dir:
                if self.folders_as_groups and entry.name != DEBUG_FOLDER:
                    found.append(ManifestEntry(entry.name, subfolder, entry.path, True))
                else:
                    found.extend(self.discover(entry.path))
                continue
            stem = self._command_stem(entry.name)
            if stem is not None:
                found.append(ManifestEntry(stem, subfolder, entry.path, False))
        return found

    def build(self) -> CommandRegistry:
        """Load every command under the root into the registry.

        Raises:
            LoadError: On the first invalid definition or name collision.
        """
        if not self.source.is_dir(self.root):
            raise TypeError(f"'{self.root}' must be a path to a folder")
        manifest = self.discover()
        for item in manifest:
            if item.is_group:
                self.load_group(item.name, item.path)
            else:
                self.load(item.name, item.subfolder)
        logger.info("Loaded %d commands from %s", len(self.registry), self.root)
        return self.registry

    # ----- leaves -----
    def _apply_middleware(self, node: CommandNode) -> CommandNode:
        for stage in self.middleware:
            result = stage(node)
            if result is not None:
                node = result
        return node

    def _node_from_definition(self, name: str, definition: Mapping[str, Any], subfolder: str, cls: type = CommandNode, **extra: Any) -> Any:
        kind = _coerce_kind(name, definition.get("kind", definition.get("type", CommandKind.chat_input)))
        options = definition.get("options")
        return cls(
            name=name,
            description=definition.get("description"),
            kind=kind,
            options=[] if options is None else coerce_options(options),
            run=definition.get("run"),
            autocomplete=definition.get("autocomplete"),
            default_member_permissions=definition.get("default_member_permissions"),
            dm_permission=definition.get("dm_permission", self.default_dm_permission),
            nsfw=bool(definition.get("nsfw", False)),
            subfolder=subfolder,
            **extra,
        )

    def _finish(self, node: CommandNode) -> CommandNode:
        node = self._apply_middleware(node)
        if (
            not isinstance(node, (CommandGroup, GuildCommand))
            and node.run is None
            and isinstance(node.options, list)
            and node.options
            and all(isinstance(o, (Subcommand, SubcommandGroup)) for o in node.options)
        ):
            node = CommandGroup.from_node(node)
        validate_command(node)
        node.freeze()
        return node

    def load(self, name: str, subfolder: str = "", *, reload: bool = False) -> CommandNode:
        """Load (or return the already loaded) leaf command `name`.

        Raises:
            LoadError: If the name is taken by another subfolder, or the
                definition is invalid.
        """
        for ext in self.file_extensions:
            if name.endswith(ext):
                name = name[: -len(ext)]
                break

        existing = self.registry.get(name)
        if existing is not None:
            if existing.subfolder != subfolder:
                raise LoadError(
                    name,
                    f"Can't load command {name} of subfolder \"{subfolder}\", "
                    f"it already exists in module \"{existing.subfolder}\"",
                )
            if not reload:
                return existing

        folder = self.root / subfolder if subfolder else self.root
        path = self._find_file(folder, name)
        if path is None:
            raise LoadError(name, f"No command file for {name} in \"{subfolder or '.'}\"")
        module = self.source.import_module(path, reload=reload)
        node = self._finish(self._node_from_definition(name, read_definition(module), subfolder))
        return self.registry.add(node, replace=reload)

    # ----- groups -----
    def _read_info(self, owner: str, folder: Path, default_description: str) -> Dict[str, Any]:
        info_path = self._find_file(folder, INFO_FILE)
        info: Dict[str, Any] = {}
        if info_path is not None:
            info = read_definition(self.source.import_module(info_path, reload=True))
        if "description" not in info and len(default_description) < MIN_DESCRIPTION_LENGTH:
            raise LoadError(
                owner,
                f"Group folder '{folder.name}' needs an {INFO_FILE} module with a description; "
                f"the default '{default_description}' is shorter than {MIN_DESCRIPTION_LENGTH} characters.",
            )
        info.setdefault("description", default_description)
        return info

    def _load_subcommand(self, parent: str, path: Path, name: str, label: str) -> Subcommand:
        definition = read_definition(self.source.import_module(path, reload=True))
        run = definition.get("run")
        if not callable(run):
            raise LoadError(parent, f"Subcommand {label} is missing a 'run' function.")
        handler = definition.get("autocomplete")
        options = definition.get("options")
        return Subcommand(
            name=name,
            description=definition.get("description"),
            options=[] if options is None else coerce_options(options),
            run=run,
            autocomplete_handler=handler,
        )

    def _load_subcommand_group(self, parent: str, folder: Path) -> SubcommandGroup:
        group_name = folder.name
        info = self._read_info(parent, folder, f"/{parent} {group_name}")
        group = SubcommandGroup(name=group_name, description=info["description"])
        for entry in self.source.list(folder):
            if entry.name.startswith(RESERVED_PREFIX):
                continue
            if entry.is_dir:
                raise LoadError(
                    parent,
                    f"Cannot have a subcommand group inside another subcommand group (in '{group_name}')",
                )
            stem = self._command_stem(entry.name)
            if stem is None:
                continue
            sub = self._load_subcommand(parent, entry.path, stem, f"{group_name}/{stem}")
            group.options.append(sub)
            group.subcommands[stem] = sub
        return group

    def load_group(self, name: str, folder: Optional[Path] = None, *, reload: bool = False) -> CommandGroup:
        """Build a CommandGroup from a folder: files are subcommands, folders
        are subcommand groups."""
        folder = folder or self.root / name
        if folder.parent == self.root and folder.name in self.special_folders:
            raise LoadError(name, f"'{folder.name}' is a special folder and is not loaded as a command group.")
        subfolder = self._relative(folder)
        existing = self.registry.get(name)
        if existing is not None:
            if existing.subfolder != subfolder:
                raise LoadError(
                    name,
                    f"Can't load command {name} of subfolder \"{subfolder}\", "
                    f"it already exists in module \"{existing.subfolder}\"",
                )
            if not reload:
                return existing  # type: ignore[return-value]

        info = self._read_info(name, folder, f"/{name}")
        group = CommandGroup(
            name=name,
            description=info["description"],
            autocomplete=info.get("autocomplete"),
            default_member_permissions=info.get("default_member_permissions"),
            dm_permission=info.get("dm_permission", self.default_dm_permission),
            nsfw=bool(info.get("nsfw", False)),
            subfolder=subfolder,
        )
        for entry in self.source.list(folder):
            if entry.name.startswith(RESERVED_PREFIX):
                continue
            if entry.is_dir:
                group.add(self._load_subcommand_group(name, entry.path))
                continue
            stem = self._command_stem(entry.name)
            if stem is not None:
                group.add(self._load_subcommand(name, entry.path, stem, stem))

        validate_command(group)
        group.freeze()
        self.registry.add(group, replace=reload)
        return group

    def reload(self, name: str, subfolder: str = "") -> CommandNode:
        """Re-import a command from disk and replace it in the registry."""
        if not subfolder and name in self.special_folders:
            raise LoadError(name, f"'{name}' is a special folder and can't be reloaded as a regular command.")
        folder = self.root / subfolder if subfolder else self.root
        if self.folders_as_groups and self._find_file(folder, name) is None and self.source.is_dir(folder / name):
            return self.load_group(name, folder / name, reload=True)
        return self.load(name, subfolder, reload=True)

    # ----- guild commands -----
    def load_guild_commands(self, folder: Optional[Path] = None, scopes: Optional[ScopeRegistry] = None) -> List[GuildCommand]:
        """Load per-guild commands from `folder` (default: `<root>/_guild`).

        Loaded commands are added to the command registry (for routing, kept
        out of the default scope) and to `scopes` when given.

        Raises:
            LoadError: For invalid definitions or a non-callable
                `get_options`/`should_create_for`.
        """
        folder = folder or self.root / GUILD_FOLDER
        if not self.source.is_dir(folder):
            return []
        subfolder = self._relative(folder) if folder.is_relative_to(self.root) else str(folder)
        loaded: List[GuildCommand] = []
        for entry in self.source.list(folder):
            if entry.is_dir or entry.name.startswith(RESERVED_PREFIX):
                continue
            stem = self._command_stem(entry.name)
            if stem is None:
                continue
            definition = read_definition(self.source.import_module(entry.path))
            predicate = definition.get("should_create_for", always_create)
            if not callable(predicate):
                raise LoadError(stem, f"Guild command 'should_create_for' must be a function, got {type(predicate).__name__}.")
            get_options = definition.get("get_options")
            if get_options is not None and not callable(get_options):
                raise LoadError(stem, f"Guild command 'get_options' must be a function, got {type(get_options).__name__}.")
            if predicate is always_create:
                logger.warning(
                    "Guild command %s uses the default should_create_for. Maybe it should be registered as a regular command?",
                    stem,
                )
            node = self._node_from_definition(
                stem, definition, subfolder, cls=GuildCommand, should_create_for=predicate, get_options=get_options
            )
            command = self._finish(node)
            self.registry.add(command, default_scope=False)
            if scopes is not None:
                scopes.add(command)  # type: ignore[arg-type]
            loaded.append(command)  # type: ignore[arg-type]
        return loaded


__all__ = [
    "RESERVED_PREFIX",
    "DEBUG_FOLDER",
    "GUILD_FOLDER",
    "INFO_FILE",
    "Middleware",
    "SourceEntry",
    "ManifestEntry",
    "CommandSource",
    "read_definition",
    "CommandTreeBuilder",
]
