"""
Provisioning of the dependency folder of a layer and installation of packages
into it.
"""
from collections.abc import (
    Iterable,
    Sequence,
    Set,
)
import glob
import logging
from pathlib import (
    Path,
)
import shutil
import subprocess

import attrs

from layman.exceptions import (
    InstallError,
)
from layman.options import (
    Packager,
)

log = logging.getLogger(__name__)


@attrs.frozen(kw_only=True)
class LayerFolder:
    path: Path

    #: Whether the folder is created and emptied by us, as opposed to being
    #: provided by the user
    managed: bool = False

    def prepare(self) -> bool:
        """
        Make the folder ready for installation.

        :return: False, if the folder isn't managed and doesn't exist, in
                 which case the layer should be skipped
        """
        if self.managed:
            if self.path.exists():
                log.info('Removing contents of %s', self.path)
                self._clear()
            else:
                self.path.mkdir(parents=True)
            return True
        elif self.path.is_dir():
            return True
        else:
            log.debug('Skipping layer without dependency folder at %s', self.path)
            return False

    def _clear(self):
        for child in self.path.iterdir():
            self._delete(child)

    def write_empty_manifest(self):
        (self.path / 'package.json').write_text('{}')

    def copy_manifests(self, root: Path, packager: Packager):
        for file_name in ('package.json', packager.lockfile):
            log.debug('Copying %s to %s', file_name, self.path)
            shutil.copyfile(root / file_name, self.path / file_name)

    def prune(self, patterns: Iterable[str]) -> list[Path]:
        """
        Delete the files and directories matching the given glob patterns,
        relative to this folder. Patterns starting with ``!`` spare their
        matches from deletion. A directory containing a spared path is not
        deleted, only those of its contents that aren't spared are.

        :return: the deleted paths
        """
        excluded, spared = set(), set()
        for pattern in patterns:
            if pattern.startswith('!'):
                matches, pattern = spared, pattern[1:]
            else:
                matches = excluded
            # Path() drops the trailing slash of directory matches like `dir/`
            matches.update(map(Path, glob.glob(pattern,
                                               root_dir=self.path,
                                               recursive=True,
                                               include_hidden=True)))
        ancestors = {parent for path in spared for parent in path.parents}
        deleted = []
        # Reverse order visits children before their parents
        for match in sorted(excluded - spared, reverse=True):
            if match in ancestors:
                deleted.extend(self._prune_children(match, spared, ancestors))
            else:
                path = self.path / match
                if self._delete(path):
                    deleted.append(path)
        log.info('Pruned %i paths from %s', len(deleted), self.path)
        return deleted

    def _prune_children(self,
                        directory: Path,
                        spared: Set[Path],
                        ancestors: Set[Path]
                        ) -> list[Path]:
        deleted = []
        for child in sorted((self.path / directory).iterdir()):
            relative = child.relative_to(self.path)
            if relative in spared:
                pass
            elif relative in ancestors:
                deleted.extend(self._prune_children(relative, spared, ancestors))
            elif self._delete(child):
                deleted.append(child)
        return deleted

    def _delete(self, path: Path) -> bool:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
            return True
        else:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            else:
                return True


@attrs.frozen(kw_only=True)
class PackageInstaller:
    packager: Packager

    def install(self, folder: LayerFolder, packages: Sequence[str]):
        if packages:
            self._run(self.packager.add_command(packages), folder.path)
        else:
            log.info('No packages to install into %s', folder.path)

    def install_all(self, folder: LayerFolder):
        self._run(self.packager.install_command(), folder.path)

    def _run(self, command: list[str], cwd: Path):
        log.info('Running %r in %s', command, cwd)
        try:
            subprocess.run(command,
                           cwd=cwd,
                           check=True,
                           shell=False)
        except subprocess.CalledProcessError as e:
            raise InstallError(command, e.returncode) from e
