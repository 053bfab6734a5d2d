"""Registry of named gate policies layered from built-in, global, user and festival sources."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from pathlib import Path

from fest_gates.cancel import CancelToken, check_cancelled
from fest_gates.errors import GateError, NotFoundError
from fest_gates.policy.builtin import BUILTIN_POLICIES
from fest_gates.policy.documents import NamedPolicyDocument, load_document
from fest_gates.policy.models import ConfigIssue, NamedPolicy, PolicyInfo, PolicySource, RegistrySource

LOGGER = logging.getLogger(__name__)

POLICY_FILE_SUFFIXES: tuple[str, ...] = (".yml", ".yaml")
GLOBAL_POLICY_DIR = Path(".festival/gates/policies")
USER_POLICY_DIR = Path("policies/gates")
FESTIVAL_POLICY_DIR = Path("policies/gates")


@dataclass(frozen=True, slots=True)
class _RegisteredPolicy:
    info: PolicyInfo
    policy: NamedPolicy


class PolicyRegistry:
    """Named policies available to one invocation.

    Sources are scanned once at construction, lowest precedence first:
    built-in, global (``<festivals_root>/.festival/gates/policies``), user
    (``<config_root>/policies/gates``) and festival-local
    (``<festival_path>/policies/gates``). A later source shadows an earlier
    one with the same policy name. The registry is read-only afterwards.
    """

    def __init__(
        self,
        *,
        festivals_root: Path | None = None,
        config_root: Path | None = None,
        festival_path: Path | None = None,
        cancel: CancelToken | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        check_cancelled(cancel, "PolicyRegistry")
        self._logger = logger or LOGGER
        self._policies: dict[str, _RegisteredPolicy] = {}
        self.issues: list[ConfigIssue] = []

        self._register_builtin()
        for source, directory in self._source_directories(festivals_root, config_root, festival_path):
            check_cancelled(cancel, "PolicyRegistry")
            self._scan_directory(directory, source)

    @staticmethod
    def _source_directories(
        festivals_root: Path | None,
        config_root: Path | None,
        festival_path: Path | None,
    ) -> list[tuple[RegistrySource, Path]]:
        directories: list[tuple[RegistrySource, Path]] = []
        if festivals_root is not None:
            directories.append(("global", Path(festivals_root) / GLOBAL_POLICY_DIR))
        if config_root is not None:
            directories.append(("user", Path(config_root) / USER_POLICY_DIR))
        if festival_path is not None:
            directories.append(("festival", Path(festival_path) / FESTIVAL_POLICY_DIR))
        return directories

    def _register_builtin(self) -> None:
        for name, factory in BUILTIN_POLICIES.items():
            policy = factory()
            self._policies[name] = _RegisteredPolicy(
                info=PolicyInfo(name=name, source="builtin", description=policy.description),
                policy=policy,
            )

    def _scan_directory(self, directory: Path, source: RegistrySource) -> None:
        """Register every policy file in the directory; bad files are logged and skipped."""

        if not directory.is_dir():
            return
        for path in sorted(directory.iterdir()):
            if not path.is_file() or path.suffix.lower() not in POLICY_FILE_SUFFIXES:
                continue
            name = path.stem
            try:
                document = load_document(path, NamedPolicyDocument)
            except GateError as exc:
                self._logger.warning("registry.policy_invalid source=%s path=%s error=%s", source, path, exc)
                self.issues.append(ConfigIssue(level=source, path=path, message=str(exc)))
                continue

            if name in self._policies:
                self._logger.debug(
                    "registry.policy_shadowed name=%s previous_source=%s source=%s",
                    name,
                    self._policies[name].info.source,
                    source,
                )
            policy_source = PolicySource(level="named-policy", path=path, name=name)
            policy = NamedPolicy(
                name=name,
                description=document.description,
                source=policy_source,
                exclude_patterns=list(document.exclude_patterns),
                tasks=[task.to_gate(policy_source) for task in document.tasks],
            )
            self._policies[name] = _RegisteredPolicy(
                info=PolicyInfo(name=name, source=source, description=document.description, path=path),
                policy=policy,
            )

    def get(self, name: str) -> PolicyInfo | None:
        registered = self._policies.get(name)
        return registered.info if registered is not None else None

    def get_policy(self, name: str) -> NamedPolicy:
        """Return an independent copy of the named policy."""

        registered = self._policies.get(name)
        if registered is None:
            raise NotFoundError("policy not found", op="PolicyRegistry.get_policy", name=name)
        return copy.deepcopy(registered.policy)

    def list_names(self) -> list[str]:
        return sorted(self._policies)

    def list_info(self) -> list[PolicyInfo]:
        return [self._policies[name].info for name in self.list_names()]

    def __contains__(self, name: object) -> bool:
        return name in self._policies
